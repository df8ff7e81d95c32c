from banb.db.session import Base, build_session_factory, create_engine_from_url, create_schema

__all__ = ["Base", "build_session_factory", "create_engine_from_url", "create_schema"]
