import flet as ft
from billsync.services.auth_service import AuthService

class LoginPage(ft.Container):
    def __init__(self, page: ft.Page, auth_service: AuthService, on_login_success):
        super().__init__()
        self.page_ref = page  # Guardamos referencia como page_ref para evitar conflito
        self.on_login_success = on_login_success
        self.auth_service = auth_service

        self.padding = 30
        self.alignment = ft.alignment.center

        # --- Criação dos Controles ---
        self.txt_email = ft.TextField(
            label="E-mail",
            prefix_icon=ft.Icons.EMAIL,
            autofocus=True,
            on_submit=lambda e: self.txt_pass.focus()
        )
        self.txt_pass = ft.TextField(
            label="Senha",
            password=True,
            can_reveal_password=True,
            prefix_icon=ft.Icons.LOCK,
            on_submit=self.attempt_login
        )

        self.btn_login = ft.ElevatedButton(
            text="Entrar",
            icon=ft.Icons.LOGIN,
            style=ft.ButtonStyle(
                padding=20,
                shape=ft.RoundedRectangleBorder(radius=8),
                bgcolor=ft.Colors.BLUE_700,
                color=ft.Colors.WHITE,
            ),
            width=200,
            on_click=self.attempt_login
        )
        self.btn_signup = ft.TextButton(
            text="Criar conta",
            on_click=self.attempt_signup
        )

        self.content = ft.Column(
            horizontal_alignment=ft.CrossAxisAlignment.CENTER,
            alignment=ft.MainAxisAlignment.CENTER,
            width=400,
            controls=[
                ft.Icon(ft.Icons.RECEIPT_LONG, size=80, color=ft.Colors.BLUE_800),
                ft.Text("BillSync", size=30, weight="bold", color=ft.Colors.BLUE_900),
                ft.Text("Entre para sincronizar entre dispositivos", size=14, color=ft.Colors.GREY_600),
                ft.Divider(height=40, color=ft.Colors.TRANSPARENT),
                self.txt_email,
                self.txt_pass,
                ft.Divider(height=20, color=ft.Colors.TRANSPARENT),
                self.btn_login,
                self.btn_signup,
            ]
        )

    async def attempt_login(self, e):
        await self._authenticate(self.auth_service.sign_in)

    async def attempt_signup(self, e):
        await self._authenticate(self.auth_service.sign_up)

    async def _authenticate(self, action):
        email = (self.txt_email.value or "").strip()
        password = self.txt_pass.value

        if not email or not password:
            self.show_error("Preencha todos os campos.")
            return

        self.btn_login.disabled = True
        self.btn_signup.disabled = True
        self.update()

        result = await action(email, password)
        if result.success:
            self.on_login_success()
            return

        self.show_error(f"Falha na autenticação: {result.error}")
        self.btn_login.disabled = False
        self.btn_signup.disabled = False
        self.update()

    def show_error(self, msg):
        self.page_ref.open(ft.SnackBar(content=ft.Text(msg), bgcolor=ft.Colors.RED_600))
