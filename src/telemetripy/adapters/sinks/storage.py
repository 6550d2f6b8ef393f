"""Alert sink persisting alerts to an AlertStoragePort."""

from telemetripy.core.models import Alert
from telemetripy.core.ports import AlertStoragePort


class StorageSink:
    name = "storage"

    def __init__(self, storage: AlertStoragePort) -> None:
        self.storage = storage

    async def send(self, alert: Alert) -> None:
        await self.storage.write(alert)
