import uuid
def generate_token() -> str: return f"token_{uuid.uuid4().hex}"
def generate_game_id() -> str: return f"game_{uuid.uuid4()}"
