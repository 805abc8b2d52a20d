import random
import string
import time

from billsync.data.kv_store import KVStore

DEVICE_KEY = "device_id"
_ALPHABET = string.digits + string.ascii_lowercase

def generate_device_id() -> str:
    """device_<época em ms>_<9 caracteres base36>"""
    suffix = "".join(random.choices(_ALPHABET, k=9))
    return f"device_{int(time.time() * 1000)}_{suffix}"

class DeviceIdentity:
    """Identificador estável por instalação, criado no primeiro uso."""
    def __init__(self, kv_store: KVStore):
        self.kv_store = kv_store
        self._device_id = None

    @property
    def device_id(self) -> str:
        if self._device_id is None:
            self._device_id = self.kv_store.get(DEVICE_KEY)
            if not self._device_id:
                self._device_id = generate_device_id()
                self.kv_store.set(DEVICE_KEY, self._device_id)
        return self._device_id
