from __future__ import annotations


class GlicemiaError(Exception):
    """Base error; ``message`` is safe to show to the user."""

    default_message = "Ocorreu um erro desconhecido. Por favor, tente novamente."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GlicemiaError):
    pass


class InvalidValue(ValidationError):
    default_message = "Por favor, insira um valor de glicemia válido."


class InvalidDateTime(ValidationError):
    default_message = "Data ou hora inválida."


class InvalidRange(ValidationError):
    default_message = "Período inválido."


AUTH_MESSAGES = {
    "invalid-email": "O formato do e-mail é inválido.",
    "user-disabled": "Esta conta de usuário foi desativada.",
    "user-not-found": "Nenhum usuário encontrado com este e-mail.",
    "wrong-password": "A senha está incorreta.",
    "email-already-in-use": "Este e-mail já está em uso.",
    "weak-password": "A senha deve ter pelo menos 6 caracteres.",
    "unknown": GlicemiaError.default_message,
}


class AuthError(GlicemiaError):
    def __init__(self, code: str) -> None:
        self.code = code if code in AUTH_MESSAGES else "unknown"
        super().__init__(AUTH_MESSAGES[self.code])


SUBSCRIPTION_MESSAGES = {
    "permission-denied": "Sem permissão para ler estes registros.",
    "unavailable": "Não foi possível carregar os registros. Verifique a conexão e tente novamente.",
    "data-loss": "Não foi possível ler os registros salvos.",
}


class SubscriptionError(GlicemiaError):
    def __init__(self, code: str) -> None:
        self.code = code if code in SUBSCRIPTION_MESSAGES else "unavailable"
        super().__init__(SUBSCRIPTION_MESSAGES[self.code])


class WriteError(GlicemiaError):
    default_message = "Erro ao salvar o registro. Tente novamente."
