import sqlite3
from typing import Optional
from billsync.data.db_context import get_db_path

class KVStore:
    """Gerencia persistência de metadados simples (Chave-Valor)"""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or get_db_path()
        self._init_table()

    def _init_table(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sys_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM sys_meta WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else default

    def set(self, key: str, value: str):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("INSERT OR REPLACE INTO sys_meta (key, value) VALUES (?, ?)", (key, value))

    def delete(self, key: str):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM sys_meta WHERE key = ?", (key,))

    # Preferências booleanas são guardadas como "1"/"0"
    def get_flag(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        return default if value is None else value == "1"

    def set_flag(self, key: str, enabled: bool):
        self.set(key, "1" if enabled else "0")
