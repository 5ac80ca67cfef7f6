from uuid import uuid4


def random_user_id() -> str:
    return str(uuid4())
