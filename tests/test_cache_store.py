import json
from pathlib import Path

from simples_worker.schemas.job import ResultStatus
from simples_worker.services.cache_store import CacheStore


def test_load_returns_empty_mapping_for_missing_file(tmp_path: Path) -> None:
    assert CacheStore(tmp_path / "missing.json").load() == {}


def test_load_tolerates_malformed_json(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    assert CacheStore(path).load() == {}

    path.write_text('["12345678000195"]', encoding="utf-8")
    assert CacheStore(path).load() == {}


def test_load_keeps_only_resolved_statuses(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps({"11111111000111": "SIM", "22222222000122": "ERRO", "33333333000133": "NÃO", "4": 1}),
        encoding="utf-8",
    )

    assert CacheStore(path).load() == {
        "11111111000111": ResultStatus.YES,
        "33333333000133": ResultStatus.NO,
    }


def test_save_overwrites_file_with_valid_entries_only(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text('{"99999999000199": "SIM"}', encoding="utf-8")

    saved = CacheStore(path).save(
        {
            "11111111000111": ResultStatus.YES,
            "22222222000122": ResultStatus.ERROR,
            "33333333000133": "NÃO",
            "44444444000144": "PENDENTE",
        }
    )

    assert saved == 2
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "11111111000111": "SIM",
        "33333333000133": "NÃO",
    }
    assert [item.name for item in tmp_path.iterdir()] == ["cache.json"]
