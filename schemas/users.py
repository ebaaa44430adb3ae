from schemas.base import WireModel


class User(WireModel):
    id: str
    username: str
