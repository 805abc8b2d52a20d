import asyncio
import flet as ft
from billsync.services.sync_manager import SyncManager, SyncState

STATUS_POLL_SECONDS = 5

# Ícone e cor por estado
STATE_STYLE = {
    SyncState.OFFLINE: (ft.Icons.WIFI_OFF, ft.Colors.ORANGE_700, "Offline. Operando localmente."),
    SyncState.SYNCING: (ft.Icons.CLOUD_SYNC, ft.Colors.BLUE_700, "Sincronizando..."),
    SyncState.SYNCED: (ft.Icons.CLOUD_DONE, ft.Colors.GREEN_700, "Sincronizado"),
}

class SyncPanel(ft.Container):
    """Status do sync: estado, pendências por coleção, último sync, botão manual e auto-sync."""
    def __init__(self, page: ft.Page, manager: SyncManager):
        super().__init__()
        self.page_ref = page
        self.manager = manager
        self._polling = False
        self.padding = 20

        self.status_icon = ft.Icon(ft.Icons.CLOUD_QUEUE)
        self.status_text = ft.Text("", size=16, weight="bold")
        self.last_sync_text = ft.Text("", color=ft.Colors.GREY_600)
        self.pending_list = ft.Column(spacing=4)

        self.btn_sync = ft.ElevatedButton(
            "Sincronizar agora",
            icon=ft.Icons.CLOUD_SYNC,
            on_click=self.run_sync
        )
        self.switch_auto = ft.Switch(
            label="Sincronização automática",
            value=manager.auto_sync_enabled,
            on_change=self.toggle_auto_sync
        )

        self.content = ft.Column(
            spacing=12,
            controls=[
                ft.Row([self.status_icon, self.status_text]),
                self.last_sync_text,
                ft.Divider(),
                ft.Text("Alterações pendentes", weight="bold"),
                self.pending_list,
                ft.Divider(),
                ft.Row([self.btn_sync, self.switch_auto]),
            ]
        )

    def did_mount(self):
        self._polling = True
        self.page_ref.run_task(self._poll_status)

    def will_unmount(self):
        self._polling = False

    async def _poll_status(self):
        while self._polling:
            await self.refresh()
            await asyncio.sleep(STATUS_POLL_SECONDS)

    async def refresh(self):
        icon, color, label = STATE_STYLE[self.manager.status]
        self.status_icon.name = icon
        self.status_icon.color = color
        self.status_text.value = label

        last_sync = await self.manager.last_sync_time()
        self.last_sync_text.value = (
            f"Último sync: {last_sync:%d/%m/%Y %H:%M:%S} (UTC)" if last_sync else "Nunca sincronizado"
        )

        pending = await self.manager.pending_changes()
        self.pending_list.controls = [
            ft.Text(f"{name}: {count}", weight="bold" if name == "total" else None)
            for name, count in pending.items()
        ]
        self.btn_sync.disabled = self.manager.is_syncing
        self.update()

    async def run_sync(self, e):
        self.btn_sync.disabled = True
        self.btn_sync.text = "Sincronizando..."
        self.update()

        result = await self.manager.sync_all()
        if result.success:
            counts = result.results.values()
            up = sum(r.uploaded for r in counts)
            down = sum(r.downloaded for r in counts)
            self.show_message(f"Sync OK! ▲{up} ▼{down}", ft.Colors.GREEN)
        else:
            self.show_message(f"Erro: {result.error}", ft.Colors.RED)

        self.btn_sync.text = "Sincronizar agora"
        self.btn_sync.disabled = False
        await self.refresh()

    async def toggle_auto_sync(self, e):
        if self.switch_auto.value:
            enabled = await self.manager.enable_auto_sync()
            if not enabled:
                self.show_message("Auto-sync salvo; será ativado após o login.", ft.Colors.ORANGE_700)
        else:
            await self.manager.disable_auto_sync()
        await self.refresh()

    def show_message(self, msg, color):
        self.page_ref.open(ft.SnackBar(ft.Text(msg), bgcolor=color))
