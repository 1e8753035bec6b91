"""Supabase client factory. Client is cached via Streamlit for the app page."""
import streamlit as st
from supabase import create_client, Client

from mocktest import config
from mocktest.database import DatabaseClient


def _env_client() -> Client:
    url = config.SUPABASE_URL
    key = config.SUPABASE_KEY
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


@st.cache_resource
def get_supabase() -> Client:
    return _env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


def get_database() -> DatabaseClient:
    """Attempt store over the cached client (Streamlit)."""
    return DatabaseClient(get_supabase())


def get_database_uncached() -> DatabaseClient:
    return DatabaseClient(get_supabase_uncached())
