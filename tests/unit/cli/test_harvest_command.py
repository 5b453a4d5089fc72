import importlib
import json
from pathlib import Path

import pytest

from tileharvest.core.errors import CapabilitiesError
from tileharvest.core.models import LayerCapabilities, SizeEstimate, TileMatrixLimits
from tileharvest.harvest import HarvestResult, JobState

cli_main = importlib.import_module("tileharvest.cli.main")

REQUEST_YAML = (
    "services:\n"
    "  - url: https://tiles.example.org/wmts\n"
    "    layers: [Ortho Photo]\n"
    "bbox: {min_x: -3, min_y: 40, max_x: -2, max_y: 41, srs: 'EPSG:4326'}\n"
    "min_zoom: 10\n"
    "max_zoom: 10\n"
)


@pytest.fixture
def request_file(tmp_path: Path) -> Path:
    path = tmp_path / "request.yaml"
    path.write_text(REQUEST_YAML, encoding="utf-8")
    return path


def test_harvest_cli_runs_job(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    request_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    called: dict[str, object] = {}

    class StubManager:
        def __init__(self, config):  # type: ignore[no-untyped-def]
            from tileharvest.harvest import ProgressTracker

            called["config"] = config
            self.progress = ProgressTracker()

        def harvest(self, request, output_path, *, job_id, stop_event=None, on_state=None):  # type: ignore[no-untyped-def]
            called["output"] = output_path
            called["layers"] = request.services[0].layers
            self.progress.update(job_id, 20, 20)
            on_state(JobState.COMPLETED)
            return HarvestResult(job_id, JobState.COMPLETED, 20, 20, output_path)

    monkeypatch.setattr(cli_main, "HarvestManager", StubManager)
    monkeypatch.chdir(tmp_path)

    exit_code = cli_main.main(["harvest", "--request", str(request_file)])

    assert exit_code == 0
    assert called["output"] == Path("output") / "ortho_photo.mbtiles"
    assert called["layers"] == ("Ortho Photo",)
    summary = json.loads(capsys.readouterr().out)
    assert summary["state"] == "COMPLETED"
    assert summary["processed_tiles"] == 20


def test_harvest_cli_reports_invalid_request(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    request_file: Path,
) -> None:
    class StubManager:
        def __init__(self, config):  # type: ignore[no-untyped-def]
            from tileharvest.harvest import ProgressTracker

            self.progress = ProgressTracker()

        def harvest(self, request, output_path, *, job_id, stop_event=None, on_state=None):  # type: ignore[no-untyped-def]
            on_state(JobState.FAILED)
            raise CapabilitiesError("Layer 'Ortho Photo' not found in capabilities")

    monkeypatch.setattr(cli_main, "HarvestManager", StubManager)

    exit_code = cli_main.main(["harvest", "--request", str(request_file), "--output", str(tmp_path / "x.mbtiles")])

    assert exit_code == 2


def test_harvest_cli_rejects_malformed_request(tmp_path: Path) -> None:
    path = tmp_path / "request.yaml"
    path.write_text("services: []\nbbox: {min_x: 0, min_y: 0, max_x: 1, max_y: 1, srs: 'EPSG:4326'}\nmin_zoom: 0\nmax_zoom: 0\n", encoding="utf-8")

    assert cli_main.main(["harvest", "--request", str(path)]) == 2


def test_estimate_cli_prints_json(
    monkeypatch: pytest.MonkeyPatch,
    request_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    class StubEstimator:
        def __init__(self, config):  # type: ignore[no-untyped-def]
            pass

        def estimate(self, request):  # type: ignore[no-untyped-def]
            return SizeEstimate(tile_count=20, tile_size_kb=12.5, store_size_mb=0.244)

    monkeypatch.setattr(cli_main, "SizeEstimator", StubEstimator)

    exit_code = cli_main.main(["estimate", "--request", str(request_file)])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {
        "tile_count": 20,
        "tile_size_kb": 12.5,
        "store_size_mb": 0.244,
    }


def test_capabilities_cli_lists_limits(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    class StubSource:
        def resolve_layers(self, service):  # type: ignore[no-untyped-def]
            limits = TileMatrixLimits.from_identifier("EPSG:3857:4", min_row=1, max_row=2, min_col=3, max_col=4)
            return [LayerCapabilities(identifier=name, limits=(limits,)) for name in service.layers]

    class StubRegistry:
        def create(self, service_type, session, config):  # type: ignore[no-untyped-def]
            return StubSource()

    monkeypatch.setattr(cli_main, "default_registry", StubRegistry)

    exit_code = cli_main.main(["capabilities", "--url", "https://tiles.example.org/wmts", "--layer", "ortho"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert out.splitlines()[0] == "ortho\t-180,-90,180,90"
    assert "zoom=4\trows=1-2\tcols=3-4" in out
