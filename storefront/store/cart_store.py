import json, uuid
from typing import Dict, Any, List, Optional, Tuple
from redis import Redis
from storefront.core.config import settings

def get_client() -> Redis:
    return Redis.from_url(settings.REDIS_URL, decode_responses=True)

def cart_key(user_id: int) -> str:
    return f"cart:{user_id}"

def line_key(line_id: str) -> str:
    return f"cartline:{line_id}"

def slot_field(product_id: int, size: str) -> str:
    # one hash field per (product, size), so a cart can never hold two lines for the same slot
    return f"{product_id}:{size}"

def _owner(user_id: int, field: str) -> str:
    return f"{user_id}:{field}"

def _parse_owner(value: str) -> Tuple[int, str]:
    user_id, field = value.split(":", 1)
    return int(user_id), field

def get_lines(user_id: int) -> List[Dict[str, Any]]:
    r = get_client()
    raw = r.hgetall(cart_key(user_id))  # {product_id:size: json}
    lines = [json.loads(v) for v in raw.values()]
    return sorted(lines, key=lambda it: it.get("created", 0))

def get_line(line_id: str) -> Optional[Dict[str, Any]]:
    r = get_client()
    owner = r.get(line_key(line_id))
    if owner is None:
        return None
    user_id, field = _parse_owner(owner)
    val = r.hget(cart_key(user_id), field)
    return json.loads(val) if val else None

def new_line(user_id: int, product_id: int, size: str, qty: int, created: float) -> Dict[str, Any]:
    return {"id": uuid.uuid4().hex, "user_id": user_id, "product_id": product_id, "size": size, "qty": qty, "created": created}

def merge_line(user_id: int, product_id: int, size: str, qty: int, created: float) -> Dict[str, Any]:
    """Add qty to the (product, size) line, creating it if needed. Retries if the cart changes underneath."""
    r = get_client()
    key = cart_key(user_id)
    field = slot_field(product_id, size)

    def merge(pipe):
        raw = pipe.hget(key, field)
        line = json.loads(raw) if raw else new_line(user_id, product_id, size, 0, created)
        line["qty"] += qty
        pipe.multi()
        pipe.hset(key, field, json.dumps(line))
        pipe.set(line_key(line["id"]), _owner(user_id, field))
        return line

    return r.transaction(merge, key, value_from_callable=True)

def put_line(line: Dict[str, Any]):
    r = get_client()
    field = slot_field(line["product_id"], line["size"])
    pipe = r.pipeline()
    pipe.hset(cart_key(line["user_id"]), field, json.dumps(line))
    pipe.set(line_key(line["id"]), _owner(line["user_id"], field))
    pipe.execute()

def delete_line(user_id: int, line_id: str) -> bool:
    """Remove a line from the user's cart. Returns False when the line is unknown or not theirs."""
    r = get_client()
    owner = r.get(line_key(line_id))
    if owner is None:
        return False
    owner_id, field = _parse_owner(owner)
    if owner_id != user_id:
        return False
    pipe = r.pipeline()
    pipe.hdel(cart_key(user_id), field)
    pipe.delete(line_key(line_id))
    pipe.execute()
    return True

def clear_cart(user_id: int):
    r = get_client()
    lines = r.hvals(cart_key(user_id))
    pipe = r.pipeline()
    for val in lines:
        pipe.delete(line_key(json.loads(val)["id"]))
    pipe.delete(cart_key(user_id))
    pipe.execute()
