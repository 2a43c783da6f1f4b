"""Mixed delivery workload scenario.

Combines tracking journeys and order chat with weights that model a
delivery platform at dinner time. This is the recommended scenario for
load baseline testing.
"""

from locust import HttpUser, between

from loadtests.scenarios.chat import OrderConversation
from loadtests.scenarios.tracking import CancelledDeliveryJourney, DeliveryJourney


class MixedWorkloadUser(HttpUser):
    """Realistic mixed workload.

    Tracking (80%):
    - Full delivery with courier pings: most common
    - Cancelled order: occasional

    Chat (20%):
    - Customer/courier conversation on an order
    """

    wait_time = between(0.5, 3.0)
    tasks = {
        DeliveryJourney: 7,
        CancelledDeliveryJourney: 1,
        OrderConversation: 2,
    }
