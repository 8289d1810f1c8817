import random

import pytest
from fastapi import HTTPException

from companion.db.study_guides_repo import InMemoryStudyGuideRepo
from companion.db.subjects_repo import InMemorySubjectRepo
from companion.schemas.study_guide import StudyGuideRequest
from companion.services.study_guide_service import (
    delete_study_guide,
    generate_study_guide,
    get_study_guide,
    list_study_guides,
)


@pytest.fixture
def repos(subject_doc):
    return InMemoryStudyGuideRepo(), InMemorySubjectRepo([subject_doc])


def _generate(repos, ai_client, user_id="usr_1", exam="quiz1"):
    guides, subjects = repos
    return generate_study_guide(
        StudyGuideRequest(subject="Python", exam=exam),
        user_id,
        repo=guides,
        subject_repo=subjects,
        client=ai_client,
        rng=random.Random(11),
    )


def test_first_request_generates_guide(repos, ai_client):
    envelope = _generate(repos, ai_client)
    assert envelope.cached is False
    assert envelope.study_guide.content == ai_client.text
    assert envelope.study_guide.questions_count == 18
    assert sorted(envelope.study_guide.topics) == ["Functions", "Loops", "Strings"]
    assert len(ai_client.prompts) == 1
    assert "QUESTIONS ANALYZED" in ai_client.prompts[0]


def test_repeat_request_returns_owned_guide(repos, ai_client):
    first = _generate(repos, ai_client)
    second = _generate(repos, ai_client)
    assert second.cached is True
    assert second.message == "You already have this study guide"
    assert second.study_guide.id == first.study_guide.id
    assert len(ai_client.prompts) == 1


def test_other_user_gets_clone_without_ai_call(repos, ai_client):
    first = _generate(repos, ai_client)
    clone = _generate(repos, ai_client, user_id="usr_2")
    guides, _ = repos
    assert clone.cached is True
    assert clone.study_guide.id != first.study_guide.id
    assert clone.study_guide.content == first.study_guide.content
    assert len(guides.storage) == 2
    assert len(ai_client.prompts) == 1


def test_empty_paper_is_not_found(repos, ai_client):
    with pytest.raises(HTTPException) as exc:
        _generate(repos, ai_client, exam="ET")
    assert exc.value.status_code == 404
    assert ai_client.prompts == []


def test_questions_outside_allowed_terms_are_ignored(repos, ai_client, monkeypatch):
    monkeypatch.setenv("STUDY_GUIDE_TERMS", "Sept 2030")
    with pytest.raises(HTTPException) as exc:
        _generate(repos, ai_client)
    assert exc.value.status_code == 404


def test_list_get_and_delete_are_owner_scoped(repos, ai_client):
    guides, _ = repos
    guide = _generate(repos, ai_client).study_guide

    listing = list_study_guides("usr_1", repo=guides)
    assert [item.id for item in listing.study_guides] == [guide.id]
    assert list_study_guides("usr_2", repo=guides).study_guides == []

    assert get_study_guide(guide.id, "usr_1", repo=guides).study_guide.content == ai_client.text
    with pytest.raises(HTTPException) as foreign:
        get_study_guide(guide.id, "usr_2", repo=guides)
    assert foreign.value.status_code == 404

    with pytest.raises(HTTPException):
        delete_study_guide(guide.id, "usr_2", repo=guides)
    delete_study_guide(guide.id, "usr_1", repo=guides)
    assert guides.storage == {}
