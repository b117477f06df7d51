"""
Tests for messaging and the notification inbox
"""

from httpx import AsyncClient

from conftest import act_as


async def send(client, sender, receiver, content):
    act_as(client, sender)
    response = await client.post("/messages/", json={"receiver_id": receiver.id, "content": content})
    assert response.status_code == 201, response.text
    return response.json()


class TestMessages:

    async def test_send_notifies_receiver(self, client: AsyncClient, donor, ngo):
        message = await send(client, ngo, donor, "When can we pick up?")

        assert message["sender_id"] == ngo.id
        assert message["is_read"] is False

        act_as(client, donor)
        inbox = (await client.get("/notifications/")).json()
        assert [n["title"] for n in inbox] == ["New Message"]
        assert inbox[0]["type"] == "message"

    async def test_recipient_must_exist(self, client: AsyncClient, donor):
        act_as(client, donor)

        missing = await client.post("/messages/", json={"receiver_id": 999, "content": "Hi"})
        to_self = await client.post("/messages/", json={"receiver_id": donor.id, "content": "Hi"})

        assert missing.status_code == 404
        assert to_self.status_code == 400

    async def test_inactive_ngo_cannot_message(self, client: AsyncClient, donor, unverified_ngo):
        act_as(client, unverified_ngo)

        response = await client.post("/messages/", json={"receiver_id": donor.id, "content": "Hi"})

        assert response.status_code == 403

    async def test_conversations_and_thread(self, client: AsyncClient, donor, ngo, other_ngo):
        await send(client, ngo, donor, "First")
        await send(client, ngo, donor, "Second")
        await send(client, donor, ngo, "Reply")
        await send(client, other_ngo, donor, "Hello from another NGO")

        act_as(client, donor)
        conversations = (await client.get("/messages/conversations")).json()

        assert [c["user_id"] for c in conversations] == [other_ngo.id, ngo.id]
        by_user = {c["user_id"]: c for c in conversations}
        assert by_user[ngo.id]["name"] == "Helping Foundation"
        assert by_user[ngo.id]["last_message"] == "Reply"
        assert by_user[ngo.id]["unread_count"] == 2
        assert by_user[other_ngo.id]["unread_count"] == 1

        thread = (await client.get(f"/messages/with/{ngo.id}")).json()
        assert [m["content"] for m in thread] == ["First", "Second", "Reply"]
        assert all(m["is_read"] for m in thread if m["receiver_id"] == donor.id)

        conversations = (await client.get("/messages/conversations")).json()
        assert {c["user_id"]: c["unread_count"] for c in conversations} == {
            ngo.id: 0,
            other_ngo.id: 1,
        }

    async def test_reading_does_not_touch_the_other_side(self, client: AsyncClient, donor, ngo):
        await send(client, donor, ngo, "Is Saturday fine?")

        act_as(client, donor)
        thread = (await client.get(f"/messages/with/{ngo.id}")).json()

        assert thread[0]["is_read"] is False


class TestNotificationInbox:

    async def test_unread_count_and_mark_read(self, client: AsyncClient, donor, ngo, other_ngo):
        await send(client, ngo, donor, "One")
        await send(client, other_ngo, donor, "Two")
        await send(client, ngo, other_ngo, "Elsewhere")

        act_as(client, donor)
        assert (await client.get("/notifications/unread-count")).json() == {"unread": 2}

        inbox = (await client.get("/notifications/")).json()
        newest = inbox[0]
        assert inbox[0]["id"] > inbox[1]["id"]

        marked = await client.post(f"/notifications/{newest['id']}/read")
        assert marked.json()["is_read"] is True
        assert (await client.get("/notifications/unread-count")).json() == {"unread": 1}

        assert (await client.post("/notifications/read-all")).json() == {"updated": 1}
        assert (await client.get("/notifications/unread-count")).json() == {"unread": 0}

    async def test_cannot_mark_someone_elses(self, client: AsyncClient, donor, ngo):
        await send(client, ngo, donor, "Private")
        act_as(client, donor)
        note = (await client.get("/notifications/")).json()[0]

        act_as(client, ngo)
        response = await client.post(f"/notifications/{note['id']}/read")

        assert response.status_code == 404
