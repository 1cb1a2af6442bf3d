import os
import tempfile
import uuid
from collections.abc import Generator
from datetime import date

os.environ.setdefault("SPD_DATA_DIR", tempfile.mkdtemp(prefix="sponsordesk-tests-"))

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

import sponsordesk.models  # noqa: F401
from sponsordesk.database import get_session
from sponsordesk.main import app
from sponsordesk.models.deal import Brand, Deal
from sponsordesk.models.exclusivity import ExclusivityRule, ExclusivityScope


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def session(engine, monkeypatch):
    with Session(engine) as sess:
        monkeypatch.setattr("sponsordesk.database.engine", engine)
        yield sess


@pytest.fixture
def client(engine, monkeypatch):
    monkeypatch.setattr("sponsordesk.database.engine", engine)

    def _override_session() -> Generator[Session, None, None]:
        with Session(engine) as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
    app.dependency_overrides.clear()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_deal(engine):
    def _make(
        user_id: uuid.UUID,
        title: str = "Launch campaign",
        brand_name: str = "Acme Phones",
    ) -> Deal:
        with Session(engine) as s:
            brand = Brand(user_id=user_id, name=brand_name)
            s.add(brand)
            s.flush()
            deal = Deal(user_id=user_id, brand_id=brand.id, title=title)
            s.add(deal)
            s.commit()
            s.refresh(deal)
            s.expunge(deal)
            return deal

    return _make


@pytest.fixture
def make_rule(engine):
    def _make(
        deal: Deal,
        category_path: str = "Tech/Smartphones",
        scope: ExclusivityScope = ExclusivityScope.EXACT_CATEGORY,
        start_date: date = date(2025, 1, 1),
        end_date: date = date(2025, 1, 31),
        platforms: list[str] | None = None,
        regions: list[str] | None = None,
    ) -> ExclusivityRule:
        with Session(engine) as s:
            rule = ExclusivityRule(
                deal_id=deal.id,
                category_path=category_path,
                scope=scope,
                start_date=start_date,
                end_date=end_date,
                platforms=platforms or ["INSTAGRAM"],
                regions=regions or ["GLOBAL"],
            )
            s.add(rule)
            s.commit()
            s.refresh(rule)
            s.expunge(rule)
            return rule

    return _make
