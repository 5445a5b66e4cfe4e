"""Tests for Pipeline wiring, event republication and terminal state."""

import asyncio
import zipfile
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pullchain import (
    ArchiveError,
    EventType,
    FetchError,
    Fetcher,
    FilterChain,
    FilterError,
    FilterOutcome,
    FilterSpec,
    Pipeline,
    PipelineConfig,
    PipelineState,
    run_blocking,
)
from pullchain.http import HttpResponse


def record_events(pipeline):
    """Subscribe to the external surface and return the list events land in."""
    events = []
    pipeline.on("job:parsed", lambda type, data: events.append(("job:parsed", type, data)))
    pipeline.on("exit", lambda name: events.append(("exit", name)))
    pipeline.on("error", lambda error: events.append(("error", error)))
    return events


@pytest.fixture
def mock_http_client():
    """Create mock HTTP client answering 200 with a small page."""
    client = AsyncMock()
    client.get.return_value = HttpResponse(
        status_code=200,
        content=b"<html><head><title>Example Domain</title></head><body><a href='/more'>More</a></body></html>",
        content_type="text/html; charset=UTF-8",
    )
    return client


class TestScenarios:
    """End-to-end scenarios for one pipeline run."""

    @pytest.mark.asyncio
    async def test_remote_zero_filters_exits(self, mock_http_client):
        """Test that a fetched page with no filters exits immediately."""
        pipeline = Pipeline("http://example.com", "example", http_client=mock_http_client)
        events = record_events(pipeline)

        await pipeline.start()

        assert events == [("exit", "example")]
        assert pipeline.state == PipelineState.DONE
        assert pipeline.parse_triggered is False

    @pytest.mark.asyncio
    async def test_remote_404_errors(self, mock_http_client):
        """Test that a 404 produces only an error."""
        mock_http_client.get.return_value = HttpResponse(status_code=404, content=b"missing")
        pipeline = Pipeline("http://example.com/missing", "missing", http_client=mock_http_client)
        pipeline.filter("title")
        events = record_events(pipeline)

        await pipeline.start()

        assert len(events) == 1
        assert events[0][0] == "error"
        assert isinstance(events[0][1], FetchError)
        assert events[0][1].status_code == 404
        assert pipeline.state == PipelineState.FAILED

    @pytest.mark.asyncio
    async def test_local_file_uppercase(self, tmp_path, monkeypatch):
        """Test that a local file runs through a filter then exits."""
        (tmp_path / "README.md").write_text("hello roach")
        monkeypatch.chdir(tmp_path)
        pipeline = Pipeline("README.md", "readme").filter("uppercase")
        events = record_events(pipeline)

        await pipeline.start()

        assert events == [("job:parsed", "uppercase", "HELLO ROACH"), ("exit", "readme")]
        assert pipeline.parse_triggered is True

    @pytest.mark.asyncio
    async def test_archive_extracted_then_filtered(self, tmp_path):
        """Test that a .zip locator behaves like a normal successful fetch."""
        archive = tmp_path / "archive.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("a.md", "# A")
            zf.writestr("sub/b.md", "# B")
        pipeline = Pipeline(str(archive), "bundle", {"extract_dir": tmp_path / "out"})
        pipeline.filter("files")
        events = record_events(pipeline)

        await pipeline.start()

        assert events == [("job:parsed", "files", ["a.md", "sub/b.md"]), ("exit", "bundle")]

    @pytest.mark.asyncio
    async def test_missing_path_never_filters(self):
        """Test that a fetch error never reaches the filter chain."""
        pipeline = Pipeline("/nonexistent/path", "nothing").filter("uppercase")
        chain = pipeline._chain
        events = record_events(pipeline)

        with (
            patch.object(chain, "set_document", MagicMock()) as set_document,
            patch.object(chain, "apply_filters", AsyncMock()) as apply_filters,
        ):
            await pipeline.start()

        assert [e[0] for e in events] == ["error"]
        set_document.assert_not_called()
        apply_filters.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_encrypted_archive_errors(self, tmp_path, encrypted_zip):
        """Test that an archive that cannot be extracted ends in one error."""
        pipeline = Pipeline(str(encrypted_zip), "locked", {"extract_dir": tmp_path / "out"}).filter("files")
        events = record_events(pipeline)

        await pipeline.start()

        assert [e[0] for e in events] == ["error"]
        assert isinstance(events[0][1], ArchiveError)
        assert pipeline.state == PipelineState.FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("locator", ["~pullchain_no_such_user/file.txt", "bad\x00path.txt"])
    async def test_unresolvable_path_errors(self, locator):
        """Test that a path that cannot be resolved ends in one error."""
        pipeline = Pipeline(locator, "unresolvable").filter("uppercase")
        events = record_events(pipeline)

        await pipeline.start()

        assert [e[0] for e in events] == ["error"]
        assert isinstance(events[0][1], FetchError)
        assert pipeline.state == PipelineState.FAILED

    @pytest.mark.asyncio
    async def test_filter_failure(self, mock_http_client):
        """Test that a failing filter ends the run with one error after earlier results."""
        calls = []
        pipeline = Pipeline("https://example.com", "failing", http_client=mock_http_client)
        pipeline.filter("title")
        pipeline.add_filter(lambda doc, params: FilterOutcome.failure("broken"))
        pipeline.add_filter(lambda doc, params: calls.append("late"))
        events = record_events(pipeline)

        await pipeline.start()

        assert events[0] == ("job:parsed", "title", "Example Domain")
        assert events[1][0] == "error"
        assert isinstance(events[1][1], FilterError)
        assert len(events) == 2
        assert calls == []
        assert pipeline.state == PipelineState.FAILED

    @pytest.mark.asyncio
    async def test_results_in_registration_order(self, mock_http_client):
        """Test that results are republished in filter order."""
        pipeline = Pipeline("https://example.com", "ordered", http_client=mock_http_client)
        pipeline.filter("title").filter("links").filter("uppercase")
        events = record_events(pipeline)

        await pipeline.start()

        assert [e[1] for e in events if e[0] == "job:parsed"] == ["title", "links", "uppercase"]
        assert events[1][2] == ["https://example.com/more"]
        assert events[-1] == ("exit", "ordered")


class TestPipelineApi:
    """Tests for the public surface."""

    def test_registration_is_chainable(self):
        """Test that filter and add_filter return the pipeline."""
        pipeline = Pipeline("README.md")
        assert pipeline.filter("uppercase") is pipeline
        assert pipeline.add_filter(lambda doc, params: None) is pipeline

    def test_name_defaults_to_locator(self):
        """Test the default chain name."""
        assert Pipeline("README.md").name == "README.md"

    def test_get_fetcher(self):
        """Test that the owned fetcher is exposed with merged options."""
        pipeline = Pipeline("http://google.com", "g", {"headers": {"User-Agent": "foo"}})
        fetcher = pipeline.get_fetcher()
        assert isinstance(fetcher, Fetcher)
        assert fetcher is pipeline.fetcher
        assert fetcher.options.headers == {"User-Agent": "foo"}

    def test_run_is_start(self):
        """Test that run is an alias of start."""
        assert Pipeline.run is Pipeline.start

    def test_internal_events_not_exposed(self):
        """Test that only external events can be subscribed to."""
        pipeline = Pipeline("README.md")
        for event in (Fetcher.CONTENT, FilterChain.PARSED, FilterChain.DONE):
            with pytest.raises(ValueError):
                pipeline.on(event, lambda *args: None)

    @pytest.mark.asyncio
    async def test_scope_binding(self, tmp_path):
        """Test that callbacks are bound to the given scope."""

        class Collector:
            def __init__(self):
                self.names = []

        def remember(self, name):
            self.names.append(name)

        (tmp_path / "a.txt").write_text("a")
        collector = Collector()
        pipeline = Pipeline(str(tmp_path / "a.txt"), "scoped")
        pipeline.on(EventType.EXIT, remember, collector)

        await pipeline.start()

        assert collector.names == ["scoped"]

    @pytest.mark.asyncio
    async def test_start_once(self, tmp_path):
        """Test that a pipeline cannot be started twice."""
        (tmp_path / "a.txt").write_text("a")
        pipeline = Pipeline(str(tmp_path / "a.txt"))
        await pipeline.start()

        with pytest.raises(RuntimeError):
            await pipeline.start()

    @pytest.mark.asyncio
    async def test_registration_closed_after_start(self, tmp_path):
        """Test that filters cannot be added once the run finished."""
        (tmp_path / "a.txt").write_text("a")
        pipeline = Pipeline(str(tmp_path / "a.txt"))
        await pipeline.start()

        with pytest.raises(RuntimeError):
            pipeline.filter("uppercase")
        with pytest.raises(RuntimeError):
            pipeline.add_filter(lambda doc, params: "x")

    @pytest.mark.asyncio
    async def test_registration_closed_while_fetching(self, mock_http_client):
        """Test that filters added during the fetch are refused and never run."""
        release = asyncio.Event()
        response = mock_http_client.get.return_value

        async def slow_get(*args, **kwargs):
            await release.wait()
            return response

        mock_http_client.get.side_effect = slow_get
        pipeline = Pipeline("http://example.com", "late", http_client=mock_http_client)
        events = record_events(pipeline)

        task = asyncio.create_task(pipeline.start())
        await asyncio.sleep(0)
        assert pipeline.state == PipelineState.FETCHING

        with pytest.raises(RuntimeError):
            pipeline.filter("uppercase")
        with pytest.raises(RuntimeError):
            pipeline.add_filter(lambda doc, params: "x")

        release.set()
        await task

        assert events == [("exit", "late")]

    def test_off_removes_listener(self):
        """Test that a listener returned by on() can be removed."""
        pipeline = Pipeline("README.md")
        listener = pipeline.on("exit", lambda name: None)
        assert pipeline.listener_count("exit") == 1

        pipeline.off("exit", listener)

        assert pipeline.listener_count(EventType.EXIT) == 0

    def test_no_events_after_terminal(self):
        """Test that late stage events are dropped once the run finished."""
        pipeline = Pipeline("README.md", "late")
        events = record_events(pipeline)

        pipeline._on_error(FetchError("boom"))
        pipeline._on_done("late")
        pipeline._on_parsed("text", "ignored")
        pipeline._on_error(FetchError("again"))

        assert [e[0] for e in events] == ["error"]
        assert pipeline.state == PipelineState.FAILED

    @pytest.mark.asyncio
    async def test_concurrent_pipelines_independent(self, tmp_path):
        """Test that pipelines running together keep their own results."""
        (tmp_path / "a.txt").write_text("alpha")
        (tmp_path / "b.txt").write_text("beta")
        first = Pipeline(str(tmp_path / "a.txt"), "a").filter("uppercase")
        second = Pipeline(str(tmp_path / "b.txt"), "b").filter("uppercase")
        first_events = record_events(first)
        second_events = record_events(second)

        await asyncio.gather(first.start(), second.start())

        assert first_events == [("job:parsed", "uppercase", "ALPHA"), ("exit", "a")]
        assert second_events == [("job:parsed", "uppercase", "BETA"), ("exit", "b")]

    def test_from_config(self, tmp_path):
        """Test building a pipeline from a PipelineConfig."""
        config = PipelineConfig(
            locator=str(tmp_path),
            name="configured",
            filters=[FilterSpec(name="files", params={"pattern": "*.md"})],
        )
        pipeline = Pipeline.from_config(config)

        assert pipeline.name == "configured"
        assert pipeline._chain.entries[0].params == {"pattern": "*.md"}


class TestEventStream:
    """Tests for Pipeline.events()."""

    @pytest.mark.asyncio
    async def test_events_until_exit(self, tmp_path):
        """Test that the stream yields results then exit, and stops."""
        (tmp_path / "a.txt").write_text("abc")
        pipeline = Pipeline(str(tmp_path / "a.txt"), "stream").filter("uppercase")

        events = [event async for event in pipeline.events()]

        assert [e.type for e in events] == [EventType.PARSED, EventType.EXIT]
        assert events[0].result.data == "ABC"
        assert events[1].name == "stream"
        assert events[1].is_terminal

    @pytest.mark.asyncio
    async def test_events_until_error(self, tmp_path):
        """Test that the stream ends on error."""
        pipeline = Pipeline(str(tmp_path / "missing.txt"), "stream")

        events = [event async for event in pipeline.events()]

        assert len(events) == 1
        assert events[0].is_error
        assert isinstance(events[0].error, FetchError)

    @pytest.mark.asyncio
    async def test_stream_listeners_detached(self, tmp_path):
        """Test that the stream unsubscribes once it ends."""
        (tmp_path / "a.txt").write_text("abc")
        pipeline = Pipeline(str(tmp_path / "a.txt")).filter("uppercase")

        [event async for event in pipeline.events()]

        for event_type in EventType:
            assert pipeline.listener_count(event_type) == 0

    @pytest.mark.asyncio
    async def test_listener_exception_propagates(self, tmp_path):
        """Test that a failing subscriber surfaces through the stream."""
        (tmp_path / "a.txt").write_text("abc")
        pipeline = Pipeline(str(tmp_path / "a.txt")).filter("uppercase")

        def explode(type, data):
            raise KeyError("subscriber bug")

        pipeline.on("job:parsed", explode)

        with pytest.raises(KeyError):
            async for _ in pipeline.events():
                pass


class TestRunBlocking:
    """Tests for the synchronous helper."""

    def test_success(self, tmp_path):
        """Test collecting results from a blocking run."""
        (tmp_path / "a.txt").write_text("  padded  ")
        result = run_blocking(str(tmp_path / "a.txt"), "blocking", filters=["strip", "uppercase"])

        assert result.succeeded
        assert [r.type for r in result.results] == ["strip", "uppercase"]
        assert result.results[-1].data == "PADDED"
        assert result.to_dict()["state"] == "done"

    def test_failure(self, tmp_path):
        """Test that a failed run reports its error."""
        result = run_blocking(str(tmp_path / "missing"), filters=[("match", {"pattern": "x"})])

        assert not result.succeeded
        assert result.state == PipelineState.FAILED
        assert isinstance(result.error, FetchError)
        assert result.results == []

    @pytest.mark.asyncio
    async def test_refuses_running_loop(self):
        """Test that run_blocking cannot be used inside an event loop."""
        with pytest.raises(RuntimeError):
            run_blocking("README.md")
