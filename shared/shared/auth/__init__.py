from shared.auth.tokens import ExpiredSignatureError, JWTError, decode_token, encode_token

__all__ = ["ExpiredSignatureError", "JWTError", "decode_token", "encode_token"]
