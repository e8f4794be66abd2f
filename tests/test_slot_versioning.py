# tests/test_slot_versioning.py
from __future__ import annotations

import copy

import pytest
from sqlalchemy.orm import Session

from app.services import slot_store as store
from app.services import slot_versioning_service as versioning
from app.services.errors import ConflictError, NotFoundError, ValidationError

STORE = "store-1"


def _slots(title: str) -> dict:
    return {
        "main": {"id": "main", "type": "container"},
        "title": {"id": "title", "type": "text", "parentId": "main", "content": title},
    }


def _draft_with(db: Session, page_type: str, title: str):
    draft = versioning.get_or_create_draft(db, STORE, page_type)
    return versioning.update_draft(db, draft.id, _slots(title), draft.lock_version)


# ---------------- draft ----------------

def test_draft_seeded_from_packaged_defaults(db: Session):
    draft = versioning.get_or_create_draft(db, STORE, "cart", user_id="op")
    assert draft.status == "draft"
    assert "main_layout" in draft.slots
    assert draft.config_metadata["page_type"] == "cart"
    assert draft.has_unpublished_changes is False
    assert draft.lock_version == 1
    assert draft.created_by == "op"
    # idempotente: el mismo registro
    assert versioning.get_or_create_draft(db, STORE, "cart").id == draft.id


def test_draft_without_defaults_is_empty(db: Session):
    draft = versioning.get_or_create_draft(db, STORE, "login")
    assert draft.slots == {}


def test_draft_from_static_fallback(db: Session):
    fallback = {"page_name": "Custom", "slots": _slots("estático")}
    draft = versioning.get_or_create_draft(db, STORE, "login", static_fallback=fallback)
    assert draft.slots["title"]["content"] == "estático"
    assert draft.config_metadata["page_name"] == "Custom"


def test_invalid_static_fallback_is_rejected(db: Session):
    with pytest.raises(ValidationError):
        versioning.get_or_create_draft(db, STORE, "login", static_fallback={"slots": {"a": {"id": "a"}}})
    assert store.get_draft(db, STORE, "login") is None


def test_draft_seeded_from_published(db: Session):
    draft = _draft_with(db, "login", "publicado")
    versioning.publish_draft(db, draft.id)
    versioning.delete_draft(db, draft.id)

    fresh = versioning.get_or_create_draft(db, STORE, "login")
    assert fresh.slots["title"]["content"] == "publicado"


def test_update_bumps_version_and_marks_changes(db: Session):
    draft = versioning.get_or_create_draft(db, STORE, "login")
    updated = versioning.update_draft(db, draft.id, _slots("v2"), 1, metadata={"note": "x"})
    assert updated.lock_version == 2
    assert updated.has_unpublished_changes is True
    assert updated.config_metadata["note"] == "x"
    assert "lastModified" in updated.config_metadata

    reset = versioning.update_draft(db, draft.id, _slots("v3"), 2, is_reset=True)
    assert reset.has_unpublished_changes is False


def test_stale_version_conflicts(db: Session):
    draft = versioning.get_or_create_draft(db, STORE, "login")
    versioning.update_draft(db, draft.id, _slots("primero"), 1)
    with pytest.raises(ConflictError) as exc:
        versioning.update_draft(db, draft.id, _slots("segundo"), 1)
    assert exc.value.current_version == 2
    assert store.get_draft(db, STORE, "login").slots["title"]["content"] == "primero"


def test_invalid_update_leaves_draft_untouched(db: Session):
    draft = _draft_with(db, "login", "bueno")
    with pytest.raises(ValidationError):
        versioning.update_draft(db, draft.id, {"x": {"id": "x", "type": "marquee"}}, draft.lock_version)
    assert store.get_draft(db, STORE, "login").slots["title"]["content"] == "bueno"


def test_patch_slot_merges_styles(db: Session):
    draft = _draft_with(db, "login", "hola")
    patched = versioning.patch_draft_slot(
        db, draft.id, "title", styles={"color": "red"}, class_name="big", content="chau",
    )
    slot = patched.slots["title"]
    assert slot["styles"] == {"color": "red"}
    assert slot["className"] == "big"
    assert slot["content"] == "chau"

    with pytest.raises(NotFoundError):
        versioning.patch_draft_slot(db, draft.id, "nope", content="x")


def test_missing_draft_is_not_found(db: Session):
    with pytest.raises(NotFoundError):
        versioning.update_draft(db, 999, {}, 1)
    with pytest.raises(NotFoundError):
        versioning.promote_to_acceptance(db, 999)
    with pytest.raises(NotFoundError):
        versioning.promote_to_production(db, 999)


# ---------------- defaults empaquetados ----------------

def _cart_draft_without_title(db: Session):
    draft = versioning.get_or_create_draft(db, STORE, "cart")
    custom = copy.deepcopy(draft.slots)
    del custom["header_title"]
    custom["header_container"]["className"] = "mine"
    return versioning.update_draft(db, draft.id, custom, draft.lock_version)


def test_merge_defaults_adds_only_missing_slots(db: Session):
    draft = _cart_draft_without_title(db)
    versioning.publish_draft(db, draft.id)

    merged, added = versioning.merge_defaults_into_draft(db, STORE, "cart", user_id="op")
    assert added == ["header_title"]
    assert merged.id == draft.id
    assert merged.slots["header_title"]["parentId"] == "header_container"
    # lo editado no se pisa
    assert merged.slots["header_container"]["className"] == "mine"
    assert merged.has_unpublished_changes is True
    assert merged.config_metadata["mergedFromDefaults"] == "cart"
    # published queda igual hasta la próxima promoción
    assert "header_title" not in store.get_published(db, STORE, "cart").slots

    version = merged.lock_version
    again, added = versioning.merge_defaults_into_draft(db, STORE, "cart")
    assert added == []
    assert again.lock_version == version


def test_merge_defaults_with_stale_version_conflicts(db: Session):
    draft = _cart_draft_without_title(db)
    with pytest.raises(ConflictError):
        versioning.merge_defaults_into_draft(db, STORE, "cart", expected_version=draft.lock_version - 1)
    assert "header_title" not in store.get_draft(db, STORE, "cart").slots


def test_merge_defaults_without_packaged_layout(db: Session):
    with pytest.raises(NotFoundError):
        versioning.merge_defaults_into_draft(db, STORE, "login")
    assert store.get_draft(db, STORE, "login") is None
    with pytest.raises(NotFoundError):
        versioning.get_page_defaults("login")
    assert "main_layout" in versioning.get_page_defaults("cart")["slots"]


# ---------------- promociones ----------------

def test_promotion_chain_creates_independent_snapshots(db: Session):
    draft = _draft_with(db, "login", "v1")
    acceptance = versioning.promote_to_acceptance(db, draft.id, user_id="op")
    assert acceptance.status == "acceptance"
    assert acceptance.id != draft.id

    published = versioning.promote_to_production(db, acceptance.id, user_id="boss")
    assert published.status == "published"
    assert published.published_by == "boss"
    assert published.version_id is not None

    # editar el draft no toca acceptance ni published
    versioning.update_draft(db, draft.id, _slots("v2"), draft.lock_version)
    assert store.get_acceptance(db, STORE, "login").slots["title"]["content"] == "v1"
    assert store.get_published(db, STORE, "login").slots["title"]["content"] == "v1"

    history = versioning.list_history(db, STORE, "login")
    assert [v.version_idx for v in history] == [1]
    assert history[0].source == "manual"
    assert history[0].slots["title"]["content"] == "v1"


def test_one_record_per_stage(db: Session):
    draft = _draft_with(db, "login", "v1")
    versioning.publish_draft(db, draft.id)
    versioning.update_draft(db, draft.id, _slots("v2"), draft.lock_version)
    versioning.publish_draft(db, draft.id)

    assert len(store.list_for_store(db, STORE, store.PUBLISHED)) == 1
    assert len(store.list_for_store(db, STORE, store.ACCEPTANCE)) == 1
    assert [v.version_idx for v in versioning.list_history(db, STORE, "login")] == [2, 1]
    assert store.get_draft(db, STORE, "login").has_unpublished_changes is False


# ---------------- estado / publish-all ----------------

def test_unpublished_status_and_publish_all(db: Session):
    cart = _draft_with(db, "cart", "carrito")
    versioning.publish_draft(db, cart.id)
    _draft_with(db, "header", "cabecera")

    status = versioning.get_unpublished_status(db, STORE, ["cart", "header", "product"])
    assert status["page_types"] == {"cart": False, "header": True, "product": False}
    assert status["has_unpublished_changes"] is True

    published = versioning.publish_all(db, STORE)
    assert [p.page_type for p in published] == ["header"]
    assert versioning.get_unpublished_status(db, STORE, ["cart", "header"])["has_unpublished_changes"] is False


# ---------------- revert / undo ----------------

def _two_versions(db: Session):
    draft = _draft_with(db, "login", "v1")
    versioning.publish_draft(db, draft.id)
    draft = versioning.update_draft(db, draft.id, _slots("v2"), draft.lock_version)
    versioning.publish_draft(db, draft.id)
    v2, v1 = versioning.list_history(db, STORE, "login")
    return draft, v1, v2


def test_revert_seeds_draft_but_not_published(db: Session):
    draft, v1, _ = _two_versions(db)
    draft = versioning.update_draft(db, draft.id, _slots("trabajo en curso"), draft.lock_version)

    reverted = versioning.revert_to_version(db, v1.id)
    assert reverted.id == draft.id
    assert reverted.slots["title"]["content"] == "v1"
    assert reverted.reverted_from_version_id == v1.id
    assert reverted.can_undo_revert is True
    assert store.get_published(db, STORE, "login").slots["title"]["content"] == "v2"

    published = versioning.publish_draft(db, reverted.id)
    latest = versioning.list_history(db, STORE, "login")[0]
    assert latest.version_idx == 3
    assert latest.source == "revert"
    assert published.slots["title"]["content"] == "v1"


def test_undo_revert_restores_previous_draft(db: Session):
    draft, v1, _ = _two_versions(db)
    draft = versioning.update_draft(db, draft.id, _slots("trabajo en curso"), draft.lock_version)
    versioning.revert_to_version(db, v1.id)

    restored = versioning.undo_revert(db, draft.id)
    assert restored.slots["title"]["content"] == "trabajo en curso"
    assert restored.reverted_from_version_id is None
    assert restored.can_undo_revert is False

    with pytest.raises(NotFoundError):
        versioning.undo_revert(db, draft.id)


def test_undo_revert_without_previous_draft_deletes_it(db: Session):
    draft, v1, _ = _two_versions(db)
    versioning.delete_draft(db, draft.id)

    reverted = versioning.revert_to_version(db, v1.id)
    assert reverted.has_unpublished_changes is True
    assert versioning.undo_revert(db, reverted.id) is None
    assert store.get_draft(db, STORE, "login") is None


def test_revert_to_unknown_version(db: Session):
    with pytest.raises(NotFoundError):
        versioning.revert_to_version(db, 12345)


# ---------------- destroy ----------------

def test_destroy_layout_removes_everything(db: Session):
    _two_versions(db)
    other = _draft_with(db, "cart", "otra página")

    deleted = versioning.destroy_layout(db, STORE, "login")
    # draft + acceptance + published + 2 versiones
    assert deleted == 5
    assert store.get_draft(db, STORE, "login") is None
    assert store.get_published(db, STORE, "login") is None
    assert versioning.list_history(db, STORE, "login") == []
    assert store.get_draft(db, STORE, "cart").id == other.id

    with pytest.raises(NotFoundError):
        versioning.get_stage(db, STORE, "login", store.PUBLISHED)
