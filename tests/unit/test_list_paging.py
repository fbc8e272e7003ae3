from datetime import datetime, timedelta

import pytest
from sqlalchemy import insert

from app.core.database import Base, ResilientPool
from app.crud.image import image as crud_image
from app.crud.question import question as crud_question
from app.models.image import Image
from app.models.question import Question
from app.models.image_description import ImageDescription  # noqa: F401
from app.models.upload_batch import UploadBatch  # noqa: F401
from app.models.registration_token import RegistrationToken  # noqa: F401
from app.models.user import User  # noqa: F401


@pytest.fixture
async def pool(tmp_path):
    pool = ResilientPool(f"sqlite+aiosqlite:///{tmp_path / 'paging.db'}", max_connections=2, base_delay=0)
    await pool.run_sync(Base.metadata.create_all)
    yield pool
    await pool.dispose()


@pytest.fixture
def fetched_rows(pool, monkeypatch):
    """Row counts returned by every query the pool runs."""
    counts = []
    original = pool.query

    async def counting_query(*args, **kwargs):
        result = await original(*args, **kwargs)
        counts.append(len(result.rows))
        return result

    monkeypatch.setattr(pool, "query", counting_query)
    return counts


async def test_question_pages_are_ordered_and_limited_in_sql(pool, fetched_rows):
    base = datetime(2024, 1, 1)
    for n in (2, 10, 9, 1):
        await pool.query(insert(Question.__table__).values(
            id=n, question_number=f"Q{n:04d}", question=f"Question {n}", choice_a="x", correct_answer="A",
            exam_category="echocardiography", exam_type="eacvi_toe", created_at=base + timedelta(minutes=n),
        ))
    await pool.query(insert(Question.__table__).values(
        id=20, question_number=None, question="Unnumbered", choice_a="x", correct_answer="A",
        exam_category="echocardiography", exam_type="eacvi_toe", created_at=base,
    ))
    fetched_rows.clear()

    first = await crud_question.find_all(
        pool, limit=2, offset=0, exam_category="echocardiography", exam_type="eacvi_toe"
    )
    second = await crud_question.find_all(
        pool, limit=2, offset=2, exam_category="echocardiography", exam_type="eacvi_toe"
    )
    last = await crud_question.find_all(
        pool, limit=2, offset=4, exam_category="echocardiography", exam_type="eacvi_toe"
    )

    assert [q["question_number"] for q in first] == ["Q0010", "Q0009"]
    assert [q["question_number"] for q in second] == ["Q0002", "Q0001"]
    assert [q["id"] for q in last] == [20]
    assert max(fetched_rows) <= 2


async def test_untagged_image_pages_are_limited_in_sql(pool, fetched_rows):
    base = datetime(2024, 1, 1)
    for n in range(1, 6):
        await pool.query(insert(Image.__table__).values(
            id=n, filename=f"toe_{n}.png", original_name=f"{n}.png", file_path=f"uploads/toe_{n}.png",
            file_size=10, mime_type="image/png", image_type="still", tags=["lv"] if n % 2 else ["rv"],
            created_at=base + timedelta(minutes=n),
        ))
    fetched_rows.clear()

    page = await crud_image.find_all(pool, limit=2, offset=1)
    assert [i["id"] for i in page] == [4, 3]
    assert max(fetched_rows) <= 2
    assert await crud_image.get_count(pool) == 5

    tagged = await crud_image.find_all(pool, limit=10, offset=0, tags=["LV"])
    assert [i["id"] for i in tagged] == [5, 3, 1]
    assert await crud_image.get_count(pool, tags=["rv"]) == 2
