import random
import string
from uuid import uuid4


def generate_random_suffix(length=7):
    """
    Generate a short lowercase alphanumeric suffix used to keep
    generated identifiers unique
    """
    chars = string.ascii_lowercase + string.digits
    return "".join(random.choice(chars) for _ in range(length))


def generate_plan_id():
    return f"plan-{uuid4().hex}"


def generate_sub_task_id(task_id: str):
    return f"sub-{task_id}-{generate_random_suffix()}"
