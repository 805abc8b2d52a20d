"""
Resolução de conflitos: last-writer-wins sobre o registro inteiro.

Empate ou timestamps ausentes (tratados como época zero) favorecem o lado local.
"""
from datetime import datetime, timezone
from typing import Any, TypeVar

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

V = TypeVar("V")

def as_utc(value: Any) -> datetime:
    """Normaliza timestamps: None, datetime ingênuo (UTC), ISO-8601 ou época em segundos/ms."""
    if value is None or value == "":
        return EPOCH
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        # Valores grandes vêm em milissegundos (Date.now())
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return as_utc(datetime.fromisoformat(text))
    raise TypeError(f"Timestamp não suportado: {value!r}")

def _last_modified(version: Any) -> datetime:
    if isinstance(version, dict):
        raw = version.get("last_modified", version.get("lastModified"))
    else:
        raw = getattr(version, "last_modified", None)
    return as_utc(raw)

def remote_wins(local: Any, remote: Any) -> bool:
    return _last_modified(remote) > _last_modified(local)

def resolve_conflict(local: V, remote: V) -> V:
    """Retorna a versão vencedora (estritamente mais nova; senão a local)"""
    return remote if remote_wins(local, remote) else local
