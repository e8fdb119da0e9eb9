import random
import string
import time

ALNUM = string.ascii_uppercase + string.digits


def generate_order_id(prefix="ORDER"):
    ts = int(time.time() * 1000)
    rand = "".join(random.choices(ALNUM, k=6))
    return f"{prefix}_{ts}_{rand}"


def generate_customer_id(user_id):
    return f"CUST_{user_id}_{int(time.time() * 1000)}"
