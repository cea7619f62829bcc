import json
from types import SimpleNamespace

import pytest

from gedcom_reconcile.core.context import ReconcileContext
from gedcom_reconcile.core.exceptions import AnchorNotFoundError, ConfigurationError, PipelineExecutionError
from gedcom_reconcile.core.pipeline import Pipeline
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.photos.compare import compare_by_url

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
        {"id": "D2", "name": "Maria /Petrova/", "sex": "F", "birth": {"date": "1887"}},
    ],
    "families": [{"id": "G1", "husband": "D1", "wife": "D2"}],
}


def _config(names=None, **paths):
    return SimpleNamespace(
        paths=paths,
        matching={},
        compare={},
        names=names or {},
        photos={},
        debug=False,
    )


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def _context(tmp_path, **kw):
    values = dict(
        config=_config(),
        logger=get_logger("test_pipeline"),
        source_path=_write(tmp_path, "source.json", SOURCE),
        destination_path=_write(tmp_path, "dest.json", DEST),
        anchor_source_id="S1",
        anchor_destination_id="D1",
    )
    values.update(kw)
    return ReconcileContext(**values)


def test_pipeline_runs_and_exports(tmp_path):
    out = tmp_path / "result.json"
    ctx = _context(tmp_path, output_path=str(out))

    result = Pipeline(ctx).run()

    assert {e.source_id: e.destination_id for e in result.mapping} == {"S1": "D1", "S2": "D2"}
    assert json.loads(out.read_text(encoding="utf-8"))["converged"] is True
    assert ctx.stats["mapped_persons"] == 2
    assert ctx.errors == []


class UrlPhotoService:
    def compare_photos(self, source_urls, destination_urls):
        return compare_by_url(source_urls, destination_urls)


def test_pipeline_persists_photo_cache(tmp_path):
    cache_path = tmp_path / "cache" / "photos.json"
    ctx = _context(tmp_path, config=_config(photo_cache=str(cache_path)))

    Pipeline(ctx, photo_service=UrlPhotoService()).run()

    assert cache_path.exists()
    assert "photo_cache_hits" in ctx.stats


def test_option_overrides_are_applied(tmp_path):
    ctx = _context(tmp_path, option_overrides={"match_threshold": 99, "include_delete_suggestions": True})

    result = Pipeline(ctx).run()

    assert result.options.match_threshold == 99
    assert result.options.include_delete_suggestions is True


def test_missing_anchor_is_a_configuration_error(tmp_path):
    with pytest.raises(AnchorNotFoundError):
        Pipeline(_context(tmp_path, anchor_source_id="NOPE")).run()

    with pytest.raises(ConfigurationError):
        Pipeline(_context(tmp_path, anchor_destination_id=None)).run()


def test_load_failures_are_wrapped(tmp_path):
    ctx = _context(tmp_path, source_path=str(tmp_path / "missing.json"))

    with pytest.raises(PipelineExecutionError):
        Pipeline(ctx).run()
    assert ctx.errors


def test_photo_cache_untouched_without_photo_service(tmp_path):
    cache_path = tmp_path / "cache" / "photos.json"
    ctx = _context(tmp_path, config=_config(photo_cache=str(cache_path)))

    Pipeline(ctx).run()

    assert not cache_path.exists()
    assert "photo_cache_hits" not in ctx.stats


def test_corrupt_photo_cache_does_not_abort(tmp_path):
    cache_path = tmp_path / "photos.json"
    cache_path.write_text('{"version": 1, "entries": {', encoding="utf-8")
    ctx = _context(tmp_path, config=_config(photo_cache=str(cache_path)))

    result = Pipeline(ctx, photo_service=UrlPhotoService()).run()

    assert len(result.mapping) == 2
    assert json.loads(cache_path.read_text(encoding="utf-8"))["version"] == 1


def test_missing_name_dictionary_does_not_abort(tmp_path):
    names = {"given_names_csv": str(tmp_path / "missing.csv")}
    ctx = _context(tmp_path, config=_config(names=names))

    result = Pipeline(ctx).run()

    assert {e.source_id: e.destination_id for e in result.mapping} == {"S1": "D1", "S2": "D2"}
    assert ctx.errors == []
