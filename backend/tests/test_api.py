from decimal import Decimal

import pytest

from tests.conftest import (
    BUYER,
    NEW_OWNER,
    OTHER_CONTRACT,
    SELLER,
    create_listed_item,
    created_log,
    sold_log,
    to_wei,
    tx_hash,
)


def creation_body(token_id: int = 7, **extra) -> dict:
    return {
        "tokenId": token_id,
        "transactionHash": tx_hash(0xA),
        "walletAddress": SELLER,
        "title": "Gear",
        "category": "Mechanical",
        "imageUrl": "https://ipfs.io/ipfs/QmImage",
        **extra,
    }


@pytest.mark.asyncio
async def test_sync_creation_endpoint(client, chain, store):
    chain.add_receipt(tx_hash(0xA), [created_log(7, price_wei=to_wei("0.5"))])

    resp = await client.post("/api/v1/marketplace/sync-creation", json=creation_body())

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["tokenId"] == 7
    assert body["seller"] == SELLER.lower()
    assert body["alreadySynced"] is False

    item = await store.get_item(7)
    assert item.category == "Mechanical"
    assert item.image_url == "https://ipfs.io/ipfs/QmImage"


@pytest.mark.asyncio
async def test_sync_creation_replay(client, chain, store):
    chain.add_receipt(tx_hash(0xA), [created_log(7)])
    await client.post("/api/v1/marketplace/sync-creation", json=creation_body())

    resp = await client.post("/api/v1/marketplace/sync-creation", json=creation_body())

    assert resp.status_code == 200
    assert resp.json()["alreadySynced"] is True
    assert "already synced" in resp.json()["message"]
    assert len(await store.list_active_items()) == 1


@pytest.mark.asyncio
async def test_sync_creation_missing_fields(client):
    resp = await client.post("/api/v1/marketplace/sync-creation", json={"tokenId": 7})

    assert resp.status_code == 400
    assert "transactionHash" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_sync_creation_forged_event(client, chain, store):
    chain.add_receipt(tx_hash(0xA), [created_log(7, address=OTHER_CONTRACT)])

    resp = await client.post("/api/v1/marketplace/sync-creation", json=creation_body())

    assert resp.status_code == 400
    assert await store.get_item(7) is None


@pytest.mark.asyncio
async def test_sync_creation_invalid_hash(client):
    resp = await client.post(
        "/api/v1/marketplace/sync-creation",
        json=creation_body(transactionHash="0xA"),
    )

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_sync_creation_chain_unavailable(client, chain):
    chain.ready = False

    resp = await client.post("/api/v1/marketplace/sync-creation", json=creation_body())

    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_sync_creation_unexpected_error(client, chain):
    chain.add_receipt(tx_hash(0xA), [created_log(7)])
    chain.receipts[tx_hash(0xA)]["logs"] = None  # malformed node response

    resp = await client.post("/api/v1/marketplace/sync-creation", json=creation_body())

    assert resp.status_code == 500


@pytest.mark.asyncio
async def test_sync_creation_stores_token_uri(client, chain, store):
    chain.add_receipt(tx_hash(0xA), [created_log(7)])

    resp = await client.post(
        "/api/v1/marketplace/sync-creation",
        json=creation_body(tokenURI="ipfs://QmMeta"),
    )

    assert resp.status_code == 200
    assert (await store.get_item(7)).token_uri == "ipfs://QmMeta"

    resp = await client.get("/api/v1/marketplace/7")
    assert resp.json()["data"]["tokenURI"] == "ipfs://QmMeta"


@pytest.mark.asyncio
async def test_sync_creation_node_unreachable(client, chain, store):
    chain.fail_reads = True

    resp = await client.post("/api/v1/marketplace/sync-creation", json=creation_body())

    assert resp.status_code == 503
    assert await store.get_item(7) is None


@pytest.mark.asyncio
async def test_sync_purchase_endpoint(client, chain, controller, store):
    await create_listed_item(controller, chain, 7)
    chain.add_receipt(tx_hash(0xB), [sold_log(7, to_wei("0.5"))])

    resp = await client.post(
        "/api/v1/marketplace/sync-purchase",
        json={
            "tokenId": 7,
            "transactionHash": tx_hash(0xB),
            "buyerAddress": BUYER,
            "price": "999",
        },
    )

    assert resp.status_code == 200
    assert resp.json()["alreadySynced"] is False
    tx = await store.get_transaction(tx_hash(0xB))
    assert tx.price == Decimal("0.5")


@pytest.mark.asyncio
async def test_sync_purchase_item_not_in_mirror(client, chain):
    chain.add_receipt(tx_hash(0xB), [sold_log(7, to_wei("0.5"))])

    resp = await client.post(
        "/api/v1/marketplace/sync-purchase",
        json={"tokenId": 7, "transactionHash": tx_hash(0xB), "buyerAddress": BUYER},
    )

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_sync_purchase_unknown_transaction(client, chain, controller):
    await create_listed_item(controller, chain, 7)

    resp = await client.post(
        "/api/v1/marketplace/sync-purchase",
        json={"tokenId": 7, "transactionHash": tx_hash(0xB), "buyerAddress": BUYER},
    )

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_sync_status_endpoint(client, chain, controller):
    await create_listed_item(controller, chain, 9)
    chain.set_item(9, owner=NEW_OWNER, sold=True)

    resp = await client.get("/api/v1/marketplace/sync-status/9")

    assert resp.status_code == 200
    body = resp.json()
    assert body["updated"] is True
    assert body["status"] == "sold"
    assert body["owner"] == NEW_OWNER.lower()
    assert body["onChain"] == {"sold": True, "owner": NEW_OWNER.lower()}


@pytest.mark.asyncio
async def test_sync_status_not_found(client):
    resp = await client.get("/api/v1/marketplace/sync-status/9")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_get_item_self_heals(client, chain, controller, store):
    await create_listed_item(controller, chain, 9)
    chain.set_item(9, owner=NEW_OWNER, sold=True)

    resp = await client.get("/api/v1/marketplace/9")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "sold"
    assert data["owner"] == NEW_OWNER.lower()
    assert data["seller"] == SELLER.lower()
    assert (await store.get_item(9)).status == "sold"


@pytest.mark.asyncio
async def test_get_item_not_found(client):
    resp = await client.get("/api/v1/marketplace/404")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_user_nfts_endpoint(client, chain, controller):
    await create_listed_item(controller, chain, 1)
    chain.user_tokens[BUYER.lower()] = [1]

    resp = await client.get(f"/api/v1/users/{BUYER}/nfts")

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["nfts"][0]["tokenId"] == 1
    assert body["nfts"][0]["owner"] == BUYER.lower()


@pytest.mark.asyncio
async def test_user_nfts_invalid_address(client):
    resp = await client.get("/api/v1/users/not-an-address/nfts")

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_items_and_stats(client, chain, controller):
    await create_listed_item(controller, chain, 1, price="1")
    await create_listed_item(controller, chain, 2, price="0.5")
    chain.add_receipt(tx_hash(0xB), [sold_log(2, to_wei("0.5"))])
    await controller.sync_purchase(2, tx_hash(0xB), BUYER)

    resp = await client.get("/api/v1/marketplace")
    assert resp.status_code == 200
    assert [i["tokenId"] for i in resp.json()["data"]] == [1]

    resp = await client.get("/api/v1/marketplace/stats")
    assert resp.status_code == 200
    stats = resp.json()["data"]
    assert stats["totalItems"] == 2
    assert stats["totalSold"] == 1
    assert stats["totalActive"] == 1
    assert Decimal(stats["totalValue"]) == Decimal("1")
    assert Decimal(stats["listingPrice"]) == Decimal("0.00025")
    assert stats["platformFee"] == 2.5


@pytest.mark.asyncio
async def test_quote_endpoint(client, chain):
    chain.set_item(5, owner=SELLER, sold=False, price="0.75")

    resp = await client.get("/api/v1/marketplace/5/quote", params={"expectedPrice": "0.75"})
    assert resp.status_code == 200
    assert resp.json()["purchasable"] is True

    resp = await client.get("/api/v1/marketplace/5/quote", params={"expectedPrice": "0.5"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_register_user(client, store):
    resp = await client.post(
        "/api/v1/users/register",
        json={"walletAddress": BUYER, "username": "alice", "email": "Alice@Example.com"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["walletAddress"] == BUYER.lower()
    assert body["user"]["email"] == "alice@example.com"
    assert body["stats"]["totalPurchased"] == 0

    resp = await client.post(
        "/api/v1/users/register", json={"walletAddress": BUYER, "username": "alice2"}
    )
    assert resp.json()["user"]["username"] == "alice2"
    assert (await store.get_user(BUYER.lower())).email == "alice@example.com"


@pytest.mark.asyncio
async def test_register_user_requires_wallet(client):
    resp = await client.post("/api/v1/users/register", json={"username": "alice"})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_user_purchases_merges_missed_syncs(client, chain, controller, store):
    await create_listed_item(controller, chain, 1)
    await create_listed_item(controller, chain, 2)
    chain.add_receipt(tx_hash(0xB), [sold_log(1, to_wei("0.5"))])
    await controller.sync_purchase(1, tx_hash(0xB), BUYER)
    # Token 2 was bought but never synced; the read path learns about it
    chain.user_tokens[BUYER.lower()] = [1, 2]
    await controller.list_user_nfts(BUYER)

    resp = await client.get(f"/api/v1/users/{BUYER}/purchases")

    assert resp.status_code == 200
    purchases = resp.json()["purchases"]
    assert sorted(p["tokenId"] for p in purchases) == [1, 2]
    synthetic = {p["tokenId"]: p["isSynthetic"] for p in purchases}
    assert synthetic == {1: False, 2: True}


@pytest.mark.asyncio
async def test_health_reports_components(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["db"] == "connected"
    assert body["cache"] == "unavailable"
    assert body["status"] in ("ok", "degraded")
