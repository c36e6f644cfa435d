from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MERCHANT = "merchant"
    USER = "user"
