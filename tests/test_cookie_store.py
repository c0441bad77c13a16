from __future__ import annotations

import json
from pathlib import Path

from portal_invoices.portal.cookie_store import SESSION_FILE_NAME, CookieStore


COOKIES = [
    {"name": "sid", "value": "abc", "domain": "www.bvod.by", "path": "/", "expires": -1},
    {"name": "joomla_user_state", "value": "logged_in", "domain": "www.bvod.by", "path": "/"},
]


def test_missing_store_loads_empty(tmp_path: Path) -> None:
    store = CookieStore(tmp_path)
    assert not store.exists()
    assert store.load() == []


def test_save_then_load(tmp_path: Path) -> None:
    store = CookieStore(tmp_path / "downloads")
    store.save(COOKIES)

    assert store.path == tmp_path / "downloads" / SESSION_FILE_NAME
    assert store.path.name.startswith(".")
    assert json.loads(store.path.read_text(encoding="utf-8")) == COOKIES
    assert CookieStore(tmp_path / "downloads").load() == COOKIES


def test_save_overwrites_previous_session(tmp_path: Path) -> None:
    store = CookieStore(tmp_path)
    store.save(COOKIES)
    store.save([{"name": "sid", "value": "rotated"}])
    assert store.load() == [{"name": "sid", "value": "rotated"}]


def test_clear_removes_store(tmp_path: Path) -> None:
    store = CookieStore(tmp_path)
    store.save(COOKIES)
    store.clear()
    assert not store.exists()
    assert store.load() == []
    assert list(tmp_path.iterdir()) == []
    # clearing twice is harmless
    store.clear()


def test_malformed_store_is_quarantined_and_loads_empty(tmp_path: Path) -> None:
    store = CookieStore(tmp_path)
    store.save(COOKIES)
    store.path.write_text("{not json", encoding="utf-8")

    assert store.load() == []
    assert not store.exists()
    assert any(p.name.startswith(f"{SESSION_FILE_NAME}.corrupt-") for p in tmp_path.iterdir())


def test_object_instead_of_array_loads_empty(tmp_path: Path) -> None:
    store = CookieStore(tmp_path)
    store.path.write_text(json.dumps({"cookies": COOKIES}), encoding="utf-8")
    assert store.load() == []


def test_empty_store_file_loads_empty(tmp_path: Path) -> None:
    store = CookieStore(tmp_path)
    store.save(COOKIES)
    store.path.write_text("", encoding="utf-8")

    assert store.load() == []
    # a second load does not resurrect anything
    assert store.load() == []
