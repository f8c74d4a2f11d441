import os
from functools import lru_cache

from core.config import gemini_api_key, openai_api_key


@lru_cache
def get_gemini_client():
    from google import genai

    api_key = gemini_api_key()
    if api_key:
        return genai.Client(api_key=api_key)
    return genai.Client()


@lru_cache
def get_openai_client():
    from openai import AsyncOpenAI

    api_key = openai_api_key()
    if api_key:
        return AsyncOpenAI(api_key=api_key)
    return AsyncOpenAI()


@lru_cache
def get_langfuse_client():
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY")
    secret_key = os.getenv("LANGFUSE_SECRET_KEY")
    host = os.getenv("LANGFUSE_HOST", "http://localhost:3333")

    if not public_key or not secret_key:
        return None

    try:
        from langfuse import Langfuse

        return Langfuse(public_key=public_key, secret_key=secret_key, host=host)
    except Exception:
        return None
