import json

import pytest

from cli.main import main


def _run(capsys, argv):
    main(argv)
    return json.loads(capsys.readouterr().out)


def test_cli_without_dataset_prints_topology(capsys):
    payload = _run(capsys, ["--layers", "4", "--width", "300", "--height", "200"])
    assert payload["topology"]["layer_sizes"] == [4, 5, 3, 1]
    assert payload["topology"]["connections"] == 4 * 5 + 5 * 3 + 3 * 1
    assert payload["layout"]["positions"][0][0] == [50.0, 50.0]
    assert payload["snapshot"] is None


def test_cli_trains_and_writes_artifacts(tmp_path, capsys, csv_path):
    metrics = tmp_path / "metrics.jsonl"
    render = tmp_path / "net.png"
    dumped = tmp_path / "config.json"
    payload = _run(
        capsys,
        [
            "--csv",
            str(csv_path),
            "--epochs",
            "3",
            "--train",
            "--sample-index",
            "4",
            "--direction",
            "backward",
            "--metrics",
            str(metrics),
            "--render",
            str(render),
            "--dump-config",
            str(dumped),
        ],
    )
    assert payload["topology"]["layer_sizes"] == [5, 4, 3]
    assert payload["training"]["epochs"] == 3
    assert payload["snapshot"]["sample_index"] == 4
    assert payload["plan"] == {"direction": "backward", "steps": 12, "duration_ms": 1500}
    assert len(metrics.read_text().splitlines()) == 3
    assert render.exists()
    assert json.loads(dumped.read_text())["epochs"] == 3


def test_cli_config_file_and_overrides(tmp_path, capsys):
    config = tmp_path / "net.yaml"
    config.write_text("neuronsPerLayer: [2, 6, 2]\nactivationFunction: tanh\n")
    payload = _run(capsys, ["--config", str(config), "--neurons", "3,3"])
    assert payload["config"]["neurons_per_layer"] == [3, 3]
    assert payload["config"]["activation"] == "tanh"


def test_cli_reports_errors(tmp_path):
    bad = tmp_path / "data.txt"
    bad.write_text("a,b\n1,2\n")
    with pytest.raises(SystemExit):
        main(["--csv", str(bad)])
    with pytest.raises(SystemExit):
        main(["--layers", "0"])
