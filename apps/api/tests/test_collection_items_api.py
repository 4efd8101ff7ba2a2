import pytest
import pytest_asyncio
from sqlalchemy import func
from sqlalchemy.future import select

from conftest import auth_header
from models.collection_item import CollectionItem
from models.collection_item_data import CollectionItemData


USER1 = "items-user-one"
USER2 = "items-user-two"
USER3 = "items-user-three"
AUTH1 = auth_header(USER1)
AUTH2 = auth_header(USER2)
AUTH3 = auth_header(USER3)


async def _collection(client, user_id, headers, name, visibility):
    resp = await client.post(
        f"/api/v1/users/{user_id}/collections",
        json={"name": name, "visibility": visibility},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()


async def _item(client, collection_id, headers, link_url, description, **extra):
    resp = await client.post(
        f"/api/v1/collections/{collection_id}/items",
        json={"link_url": link_url, "description": description, **extra},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest_asyncio.fixture
async def seeded(api_client):
    c1 = await _collection(api_client, USER1, AUTH1, "test1", "private")
    c2 = await _collection(api_client, USER1, AUTH1, "test2", "public")
    c3 = await _collection(api_client, USER2, AUTH2, "user2", "public")
    i1 = await _item(api_client, c1["id"], AUTH1, "http://www.example.com/one", "item 1")
    i2 = await _item(api_client, c1["id"], AUTH1, "http://www.example.com/two", "item 2")
    i3 = await _item(api_client, c2["id"], AUTH1, "http://www.example.com/three", "item 3")
    i4 = await _item(api_client, c3["id"], AUTH2, i3["url"], "cloned item 3")
    return {"c1": c1, "c2": c2, "c3": c3, "i1": i1, "i2": i2, "i3": i3, "i4": i4}


async def _count_items(session_maker) -> int:
    async with session_maker() as session:
        return (await session.execute(select(func.count(CollectionItem.id)))).scalar()


@pytest.mark.asyncio
async def test_new_item_presentation_is_pending(api_client, enqueued_jobs, seeded):
    i1 = seeded["i1"]
    assert i1["image_pending"] is True
    assert i1["image_url"] is None
    assert i1["item_type"] == "url"
    assert i1["link_url"] == "http://www.example.com/one"
    assert i1["post_count"] == 1
    assert i1["upvote_count"] == 0
    assert i1["upvoted_by_user"] is False
    assert i1["root_item_id"] == i1["id"]
    assert i1["html_preview"] is None
    assert i1["description"] == "item 1"
    assert i1["url"] == f"http://www.example.com/api/v1/collections/items/{i1['id']}"
    assert i1["collection_id"] == seeded["c1"]["id"]
    # three distinct links, the clone does not enqueue
    assert len(enqueued_jobs) == 3


@pytest.mark.asyncio
async def test_list_items_newest_first_and_excludes_deleted(api_client, seeded):
    path = f"/api/v1/collections/{seeded['c1']['id']}/items"
    resp = await api_client.get(path, headers=AUTH1)
    assert resp.status_code == 200
    assert [row["id"] for row in resp.json()] == [seeded["i2"]["id"], seeded["i1"]["id"]]
    assert "Link" in resp.headers

    resp = await api_client.delete(f"/api/v1/collections/items/{seeded['i1']['id']}", headers=AUTH1)
    assert resp.status_code == 200

    resp = await api_client.get(path, headers=AUTH1)
    assert [row["id"] for row in resp.json()] == [seeded["i2"]["id"]]
    resp = await api_client.get(f"/api/v1/collections/items/{seeded['i1']['id']}", headers=AUTH1)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_other_user_lists_public_but_not_private(api_client, seeded):
    resp = await api_client.get(f"/api/v1/collections/{seeded['c1']['id']}/items", headers=AUTH3)
    assert resp.status_code == 404

    resp = await api_client.get(f"/api/v1/collections/{seeded['c2']['id']}/items", headers=AUTH3)
    assert resp.status_code == 200
    assert [row["id"] for row in resp.json()] == [seeded["i3"]["id"]]


@pytest.mark.asyncio
async def test_create_from_http_url(api_client, session_maker, seeded):
    created = await _item(api_client, seeded["c1"]["id"], AUTH1, "http://www.example.com/a/b/c", "new item")
    async with session_maker() as session:
        item = (await session.execute(select(CollectionItem).where(CollectionItem.id == created["id"]))).scalar_one()
        data = (
            await session.execute(select(CollectionItemData).where(CollectionItemData.id == item.collection_item_data_id))
        ).scalar_one()
        assert data.link_url == "http://www.example.com/a/b/c"
        assert item.user_id == USER1


@pytest.mark.asyncio
async def test_clone_shares_data_and_counts_posts(api_client, enqueued_jobs, seeded):
    jobs_before = len(enqueued_jobs)
    clone = await _item(
        api_client,
        seeded["c1"]["id"],
        AUTH1,
        f"http://localhost/api/v1/collections/items/{seeded['i3']['id']}",
        "cloned",
    )
    assert clone["post_count"] == 3
    assert clone["root_item_id"] == seeded["i3"]["id"]
    assert clone["link_url"] == seeded["i3"]["link_url"]
    assert len(enqueued_jobs) == jobs_before


@pytest.mark.asyncio
async def test_clone_of_clone_points_at_true_root(api_client, seeded):
    clone = await _item(api_client, seeded["c1"]["id"], AUTH1, seeded["i4"]["url"], "clone of clone")
    assert clone["root_item_id"] == seeded["i3"]["id"]
    assert seeded["i4"]["root_item_id"] == seeded["i3"]["id"]


@pytest.mark.asyncio
async def test_cannot_clone_item_user_cannot_read(api_client, session_maker, seeded):
    before = await _count_items(session_maker)
    resp = await api_client.post(
        f"/api/v1/collections/{seeded['c3']['id']}/items",
        json={"link_url": f"http://localhost/api/v1/collections/items/{seeded['i1']['id']}", "description": "cloned"},
        headers=AUTH2,
    )
    assert resp.status_code == 401
    assert await _count_items(session_maker) == before


@pytest.mark.asyncio
async def test_rejects_non_http_urls(api_client, session_maker, enqueued_jobs, seeded):
    before = await _count_items(session_maker)
    jobs_before = len(enqueued_jobs)
    resp = await api_client.post(
        f"/api/v1/collections/{seeded['c1']['id']}/items",
        json={"link_url": "javascript:alert(1)", "description": "new item"},
        headers=AUTH1,
    )
    assert resp.status_code == 400
    assert await _count_items(session_maker) == before
    assert len(enqueued_jobs) == jobs_before


@pytest.mark.asyncio
@pytest.mark.parametrize("link_url", ["http://www.example.com:99999/x", "http://www.example.com:abc/x"])
async def test_rejects_links_with_invalid_ports(api_client, session_maker, enqueued_jobs, seeded, link_url):
    before = await _count_items(session_maker)
    jobs_before = len(enqueued_jobs)
    resp = await api_client.post(
        f"/api/v1/collections/{seeded['c1']['id']}/items",
        json={"link_url": link_url, "description": "bad port"},
        headers=AUTH1,
    )
    assert resp.status_code == 400
    assert await _count_items(session_maker) == before
    assert len(enqueued_jobs) == jobs_before


@pytest.mark.asyncio
async def test_cannot_create_in_someone_elses_collection(api_client, session_maker, seeded):
    before = await _count_items(session_maker)
    resp = await api_client.post(
        f"/api/v1/collections/{seeded['c2']['id']}/items",
        json={"link_url": "http://www.example.com/intruder"},
        headers=AUTH2,
    )
    assert resp.status_code == 401
    resp = await api_client.post(
        f"/api/v1/collections/{seeded['c1']['id']}/items",
        json={"link_url": "http://www.example.com/intruder"},
        headers=AUTH2,
    )
    assert resp.status_code == 404
    assert await _count_items(session_maker) == before


@pytest.mark.asyncio
async def test_same_link_counts_every_post(api_client, enqueued_jobs, seeded):
    jobs_before = len(enqueued_jobs)
    link = "http://www.example.com/shared"
    last = None
    for n in range(3):
        last = await _item(api_client, seeded["c1"]["id"], AUTH1, link, f"post {n}")
    assert last["post_count"] == 3
    assert len(enqueued_jobs) == jobs_before + 1

    await api_client.delete(f"/api/v1/collections/items/{last['id']}", headers=AUTH1)
    resp = await api_client.get(f"/api/v1/collections/{seeded['c1']['id']}/items", headers=AUTH1)
    shared = [row for row in resp.json() if row["link_url"] == link]
    assert len(shared) == 2
    assert all(row["post_count"] == 3 for row in shared)


@pytest.mark.asyncio
async def test_edit_only_changes_description(api_client, seeded):
    i1 = seeded["i1"]
    resp = await api_client.put(
        f"/api/v1/collections/items/{i1['id']}",
        json={
            "description": "modified",
            "link_url": "cant change",
            "item_type": "cant change",
            "image_url": "http://www.example.com/cant_change",
        },
        headers=AUTH1,
    )
    assert resp.status_code == 200
    assert resp.json() == {**i1, "description": "modified"}


@pytest.mark.asyncio
async def test_item_creator_can_edit_but_others_cannot(api_client, seeded):
    resp = await api_client.put(
        f"/api/v1/collections/items/{seeded['i3']['id']}",
        json={"description": "hijack"},
        headers=AUTH2,
    )
    assert resp.status_code == 401

    resp = await api_client.put(
        f"/api/v1/collections/items/{seeded['i4']['id']}",
        json={"description": "mine"},
        headers=AUTH2,
    )
    assert resp.status_code == 200
    assert resp.json()["description"] == "mine"


@pytest.mark.asyncio
async def test_deleting_collection_keeps_items_active_but_unreachable(api_client, session_maker, seeded):
    resp = await api_client.delete(f"/api/v1/users/{USER1}/collections/{seeded['c1']['id']}", headers=AUTH1)
    assert resp.status_code == 200

    async with session_maker() as session:
        item = (await session.execute(select(CollectionItem).where(CollectionItem.id == seeded["i1"]["id"]))).scalar_one()
        assert item.workflow_state == "active"

    resp = await api_client.get(f"/api/v1/collections/items/{seeded['i1']['id']}", headers=AUTH1)
    assert resp.status_code == 404
    resp = await api_client.get(f"/api/v1/collections/items/{seeded['i3']['id']}", headers=AUTH1)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_upvote_is_idempotent(api_client, seeded):
    i3 = seeded["i3"]
    for _ in range(2):
        resp = await api_client.put(f"/api/v1/collections/items/{i3['id']}/upvote", headers=AUTH2)
        assert resp.status_code == 200
        body = resp.json()
        assert {k: body[k] for k in ("item_id", "root_item_id", "user_id")} == {
            "item_id": i3["id"],
            "root_item_id": i3["id"],
            "user_id": USER2,
        }

    resp = await api_client.get(f"/api/v1/collections/items/{i3['id']}", headers=AUTH2)
    assert resp.json()["upvote_count"] == 1
    assert resp.json()["upvoted_by_user"] is True

    resp = await api_client.get(f"/api/v1/collections/items/{seeded['i4']['id']}", headers=AUTH1)
    assert resp.json()["upvote_count"] == 1
    assert resp.json()["upvoted_by_user"] is False


@pytest.mark.asyncio
async def test_cannot_upvote_invisible_item(api_client, session_maker, seeded):
    resp = await api_client.put(f"/api/v1/collections/items/{seeded['i1']['id']}/upvote", headers=AUTH2)
    assert resp.status_code == 404

    resp = await api_client.get(f"/api/v1/collections/items/{seeded['i1']['id']}", headers=AUTH1)
    assert resp.json()["upvote_count"] == 0


@pytest.mark.asyncio
async def test_remove_upvote(api_client, seeded):
    i3 = seeded["i3"]
    await api_client.put(f"/api/v1/collections/items/{i3['id']}/upvote", headers=AUTH2)

    resp = await api_client.delete(f"/api/v1/collections/items/{i3['id']}/upvote", headers=AUTH2)
    assert resp.status_code == 200
    resp = await api_client.get(f"/api/v1/collections/items/{i3['id']}", headers=AUTH2)
    assert resp.json()["upvote_count"] == 0

    resp = await api_client.delete(f"/api/v1/collections/items/{i3['id']}/upvote", headers=AUTH3)
    assert resp.status_code == 200
