from aiogram.fsm.state import State, StatesGroup


class LoginForm(StatesGroup):
    waiting_email = State()
    waiting_password = State()


class RegisterForm(StatesGroup):
    waiting_full_name = State()
    waiting_email = State()
    waiting_password = State()
    waiting_confirm = State()
