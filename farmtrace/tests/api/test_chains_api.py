from farmtrace.core.hashing import GENESIS_HASH
from farmtrace.models.chain_block import ChainBlock


def new_batch(client, **overrides):
    body = {
        "id": "BATCH-0001",
        "productType": "Mango",
        "harvestDate": "2024-03-01",
        "location": "Farm A",
        "responsibleStaff": "Asha",
        "blocks": [
            {
                "timestamp": "2024-03-01T08:00:00Z",
                "actor": "Asha",
                "location": "Farm A",
                "data": {"action": "harvest", "status": "Harvested"},
                "hash": "client-supplied-and-ignored",
            },
            {
                "timestamp": "2024-03-02T08:00:00Z",
                "actor": "Ravi",
                "location": "Farm A",
                "data": {"type": "shipment"},
            },
        ],
    }
    body.update(overrides)
    return client.post("/api/batches", json=body)


def new_product(client, **overrides):
    body = {
        "id": "PROD-0001",
        "batchId": "BATCH-0001",
        "weight": 0.4,
        "size": "M",
        "quality": "A",
        "blocks": [
            {"actor": "Ravi", "actorRole": "processor", "location": "Pack House", "data": {"action": "pack"}},
        ],
    }
    body.update(overrides)
    return client.post("/api/products", json=body)


def test_create_batch_seals_supplied_blocks(client):
    r = new_batch(client)
    assert r.status_code == 201, r.text
    body = r.json()

    assert body["id"] == "BATCH-0001"
    assert body["status"] == "Harvested"
    blocks = body["blocks"]
    assert [b["blockId"] for b in blocks] == [1, 2]
    assert blocks[0]["prevHash"] == GENESIS_HASH
    assert blocks[0]["hash"] != "client-supplied-and-ignored"
    assert blocks[1]["prevHash"] == blocks[0]["hash"]
    assert [b["kind"] for b in blocks] == ["status_update", "shipment"]


def test_generated_batch_id(client):
    r = new_batch(client, id=None, blocks=[])
    assert r.status_code == 201
    assert r.json()["id"].startswith("BATCH-")


def test_batch_id_rules(client):
    assert new_batch(client, id="LOT-1").status_code == 400
    assert new_batch(client).status_code == 201
    dup = new_batch(client)
    assert dup.status_code == 400
    assert dup.json()["detail"]["error"] == "invalid_input"


def test_missing_fields_are_validation_errors(client):
    r = client.post("/api/batches", json={"productType": "Mango"})
    assert r.status_code == 422


def test_append_block_updates_status(client):
    new_batch(client)
    r = client.post(
        "/api/batches/BATCH-0001/blocks",
        json={"actor": "Ravi", "location": "Hub B", "data": {"type": "shipment", "status": "In Transit"}},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "In Transit"
    assert len(body["blocks"]) == 3
    assert body["blocks"][2]["prevHash"] == body["blocks"][1]["hash"]


def test_unknown_batch(client):
    r = client.get("/api/batches/BATCH-NOPE")
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "not_found"

    r = client.post("/api/batches/BATCH-NOPE/blocks", json={"actor": "x", "location": "y"})
    assert r.status_code == 404


def test_list_batches(client):
    new_batch(client)
    new_batch(client, id="BATCH-0002", blocks=[])
    r = client.get("/api/batches")
    assert r.status_code == 200
    assert {b["id"]: len(b["blocks"]) for b in r.json()} == {"BATCH-0001": 2, "BATCH-0002": 0}


def test_product_creation_increments_batch_quantity(client):
    new_batch(client)
    r = new_product(client)
    assert r.status_code == 201, r.text
    assert r.json()["blocks"][0]["actorRole"] == "processor"

    new_product(client, id="PROD-0002", blocks=[])
    batch = client.get("/api/batches/BATCH-0001").json()
    assert batch["quantity"] == 2

    products = client.get("/api/batches/BATCH-0001/products").json()
    assert [p["id"] for p in products] == ["PROD-0001", "PROD-0002"]


def test_product_requires_existing_batch(client):
    r = new_product(client, batchId="BATCH-NOPE")
    assert r.status_code == 404
    assert r.json()["detail"]["entityId"] == "BATCH-NOPE"


def test_product_block_append_and_lookup(client):
    new_batch(client)
    new_product(client)
    r = client.post(
        "/api/products/PROD-0001/blocks",
        json={"actor": "Lee", "actorRole": "retailer", "location": "Store C", "data": {"action": "receive"}},
    )
    assert r.status_code == 200, r.text
    assert [b["blockId"] for b in r.json()["blocks"]] == [1, 2]

    got = client.get("/api/products/PROD-0001").json()
    assert got["blocks"][1]["location"] == "Store C"
    assert client.get("/api/products").json()[0]["id"] == "PROD-0001"


def test_product_location_stats(client):
    new_batch(client)
    new_product(client)
    new_product(client, id="PROD-0002")
    new_product(client, id="PROD-0003", blocks=[])

    stats = {row["location"]: row["count"] for row in client.get("/api/products/location").json()}
    assert stats == {"Pack House": 2, None: 1}


def test_chain_verification_and_tamper_detection(client, db):
    new_batch(client)
    r = client.get("/api/batches/BATCH-0001/chain/verify")
    assert r.status_code == 200
    assert r.json()["valid"] is True
    assert r.json()["length"] == 2

    row = db.query(ChainBlock).filter_by(entity_id="BATCH-0001", seq=2).one()
    row.location = "Somewhere Else"
    db.commit()

    r = client.get("/api/batches/BATCH-0001/chain/verify")
    assert r.json()["valid"] is False
    assert r.json()["brokenIndex"] == 1

    strict = client.get("/api/batches/BATCH-0001/chain/verify?strict=true")
    assert strict.status_code == 409
    assert strict.json()["detail"]["error"] == "integrity_violation"

    audit = client.get("/api/ledger/verify").json()
    assert audit["valid"] is False
    assert audit["broken"] == 1


def test_product_chain_verification(client):
    new_batch(client)
    new_product(client)
    r = client.get("/api/products/PROD-0001/chain/verify?strict=true")
    assert r.status_code == 200
    assert r.json()["entityKind"] == "product"
    assert client.get("/api/products/PROD-NOPE/chain/verify").status_code == 404


def test_ledger_verify_all(client):
    new_batch(client)
    new_product(client)
    body = client.get("/api/ledger/verify").json()
    assert body["valid"] is True
    assert body["checked"] == 2


def test_status_that_does_not_fit_a_batch_is_rejected(client):
    new_batch(client)
    r = client.post(
        "/api/batches/BATCH-0001/blocks",
        json={"actor": "Ravi", "location": "Hub B", "data": {"status": "x" * 200}},
    )
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_input"
    assert len(client.get("/api/batches/BATCH-0001").json()["blocks"]) == 2

    bad = new_batch(
        client,
        id="BATCH-0002",
        blocks=[{"actor": "Asha", "location": "Farm A", "data": {"status": ["Harvested"]}}],
    )
    assert bad.status_code == 400
    assert client.get("/api/batches/BATCH-0002").status_code == 404
