import flet as ft
from billsync.bootstrap import BillSync
from billsync.config import ConfigError, configure_logging, load_settings
from billsync.ui.pages.login_page import LoginPage
from billsync.ui.widgets.sync_panel import SyncPanel

CONNECTIVITY_POLL_SECONDS = 5

async def main(page: ft.Page):
    page.title = "BillSync"
    page.theme_mode = ft.ThemeMode.LIGHT

    try:
        settings = load_settings()
        configure_logging(settings.log_level)
        app = BillSync(settings)
        await app.start()
    except ConfigError as e:
        page.add(ft.Text(f"Erro de Setup: {e}", color="red"))
        return

    # Sinal de conectividade para o orquestrador
    page.run_task(app.connectivity.watch, CONNECTIVITY_POLL_SECONDS)

    def route_change(route):
        page.views.clear()

        if page.route == "/login":
            page.views.append(
                ft.View(
                    "/login",
                    [LoginPage(page, app.auth, on_login_success=lambda: page.go("/"))],
                    vertical_alignment=ft.MainAxisAlignment.CENTER,
                    horizontal_alignment=ft.CrossAxisAlignment.CENTER
                )
            )

        elif page.route == "/":
            if not app.auth.current_user_id():
                page.go("/login")
                return

            page.views.append(
                ft.View(
                    "/",
                    [
                        ft.AppBar(
                            title=ft.Text("BillSync"),
                            bgcolor=ft.Colors.BLUE_700,
                            color=ft.Colors.WHITE,
                            actions=[
                                ft.IconButton(ft.Icons.LOGOUT, on_click=logout_click)
                            ]
                        ),
                        SyncPanel(page, app.manager),
                    ]
                )
            )

        page.update()

    def view_pop(view):
        page.views.pop()
        top_view = page.views[-1]
        page.go(top_view.route)

    async def logout_click(e):
        await app.auth.sign_out()
        page.go("/login")

    async def on_disconnect(e):
        await app.stop()

    page.on_route_change = route_change
    page.on_view_pop = view_pop
    page.on_disconnect = on_disconnect
    page.go("/" if app.auth.current_user_id() else "/login")

if __name__ == "__main__":
    ft.app(target=main)
