import json

from typer.testing import CliRunner

from gedcom_reconcile.cli.app import app

runner = CliRunner()

SOURCE = {
    "persons": [
        {"id": "S1", "name": "Ivan /Petrov/", "sex": "M", "birth": {"date": "1885"}},
        {"id": "S2", "name": "Maria /Petrova/", "sex": "F", "birth": {"date": "1887"}},
    ],
    "families": [{"id": "F1", "husband": "S1", "wife": "S2"}],
}
DEST = {
    "persons": [
        {"id": "D1", "name": "Ivan /Petrov/", "sex": "M", "birth": {"date": "1885"}},
        {"id": "D2", "name": "Maria /Petrova/", "sex": "M", "birth": {"date": "1887"}},
    ],
    "families": [],
}


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_compare_writes_result(tmp_path):
    src = _write(tmp_path, "source.json", SOURCE)
    dst = _write(tmp_path, "dest.json", DEST)
    out = tmp_path / "result.json"

    result = runner.invoke(
        app,
        ["compare", src, dst, "--anchor-source", "S1", "--anchor-dest", "D1", "--out", str(out), "--pretty"],
    )

    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["mapping"][0]["source_id"] == "S1"
    assert data["statistics"]["to_add"] == 1


def test_compare_unknown_anchor_exits_nonzero(tmp_path):
    src = _write(tmp_path, "source.json", SOURCE)
    dst = _write(tmp_path, "dest.json", DEST)

    result = runner.invoke(app, ["compare", src, dst, "--anchor-source", "NOPE", "--anchor-dest", "D1"])

    assert result.exit_code == 1


def test_validate_reports_high_severity(tmp_path):
    src = _write(tmp_path, "source.json", SOURCE)
    dst = _write(tmp_path, "dest.json", DEST)
    mapping = _write(tmp_path, "mapping.json", {"S1": "D1", "S2": "D2"})
    cleaned = tmp_path / "cleaned.json"

    result = runner.invoke(app, ["validate", src, dst, mapping, "--out", str(cleaned)])

    assert result.exit_code == 1
    assert json.loads(cleaned.read_text(encoding="utf-8")) == {}


def test_validate_clean_mapping(tmp_path):
    src = _write(tmp_path, "source.json", SOURCE)
    dst = _write(tmp_path, "dest.json", DEST)
    mapping = _write(tmp_path, "mapping.json", {"S1": "D1"})

    result = runner.invoke(app, ["validate", src, dst, mapping])

    assert result.exit_code == 0
