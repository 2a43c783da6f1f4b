"""Order chat load test scenarios.

A customer and a courier trade a few messages in one room; the customer
reads the history and marks the courier's messages as read.
"""

import random
import uuid

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import chat_message_data, unique_order_id, unique_room_id
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import ChatRoomState


class OrderConversation(SequentialTaskSet):
    def on_start(self):
        order_id = unique_order_id()
        self.state = ChatRoomState(
            room_id=unique_room_id(),
            order_id=order_id,
            customer_id=f"cust-lt-{uuid.uuid4().hex[:8]}",
            driver_id=f"drv-lt-{uuid.uuid4().hex[:6]}",
        )
        self.unread: list[str] = []

    @task
    def exchange_messages(self):
        for _ in range(random.randint(2, 6)):
            sender, sender_type = random.choice(
                [(self.state.customer_id, "customer"), (self.state.driver_id, "driver")]
            )
            with self.client.post(
                f"/rooms/{self.state.room_id}/messages",
                json=chat_message_data(sender, sender_type, self.state.order_id),
                catch_response=True,
                name="POST /rooms/{id}/messages",
            ) as resp:
                if resp.status_code == 201:
                    self.state.message_ids.append(resp.json()["id"])
                else:
                    resp.failure(f"Send failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def read_history(self):
        with self.client.get(
            f"/rooms/{self.state.room_id}/messages",
            catch_response=True,
            name="GET /rooms/{id}/messages",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"History failed: {resp.status_code} — {extract_error_detail(resp)}")
                return
            self.unread = [
                message["id"]
                for message in resp.json()
                if not message["read"] and message["sender_id"] != self.state.customer_id
            ]

    @task
    def mark_read(self):
        for message_id in self.unread:
            self.client.put(
                f"/rooms/{self.state.room_id}/messages/{message_id}/read",
                name="PUT /rooms/{id}/messages/{id}/read",
            )

    @task
    def done(self):
        self.interrupt()


class ChatUser(HttpUser):
    wait_time = between(1.0, 4.0)
    tasks = [OrderConversation]
