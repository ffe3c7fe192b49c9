import pytest

from dashboard.errors import DuplicateNameError, NotFoundError, ValidationError
from dashboard.services import TopicService, youtube_id_from_url


def test_add_topic_persists_materials(session, cache, add_courses):
    (course,) = add_courses("Web Basics")
    svc = TopicService(session, cache)
    topic = svc.add_topic(course.id, {
        "name": "HTTP",
        "youtubeId": "abc123",
        "youtubeUrl": "https://www.youtube.com/watch?v=abc123",
        "description": "Requests and responses",
        "materials": [{"name": "RFC", "url": "https://example.com/rfc"}, {"url": "https://example.com/slides"}],
    })
    assert topic.course_id == course.id
    assert topic.youtube_id == "abc123"
    assert [m.url for m in topic.materials] == ["https://example.com/rfc", "https://example.com/slides"]
    assert topic.materials[1].name is None


def test_list_topics_ordered_and_refreshed_after_add(session, cache, add_courses):
    (course,) = add_courses("Ordering")
    svc = TopicService(session, cache)
    svc.add_topic(course.id, {"name": "Zebra"})
    assert [t.name for t in svc.list_topics(course.id)] == ["Zebra"]
    svc.add_topic(course.id, {"name": "Aardvark"})
    assert [t.name for t in svc.list_topics(course.id)] == ["Aardvark", "Zebra"]


def test_check_topic_rejects_taken_name(session, cache, add_courses):
    (course,) = add_courses("Checks")
    svc = TopicService(session, cache)
    svc.check_topic("Loops")
    svc.add_topic(course.id, {"name": "Loops"})
    with pytest.raises(DuplicateNameError):
        svc.check_topic("Loops")
    with pytest.raises(DuplicateNameError):
        svc.add_topic(course.id, {"name": "Loops"})


def test_add_topic_to_missing_course(session, cache):
    svc = TopicService(session, cache)
    with pytest.raises(NotFoundError):
        svc.add_topic(404, {"name": "Orphan"})
    with pytest.raises(NotFoundError):
        svc.list_topics(404)


def test_add_topic_validates_payload(session, cache, add_courses):
    (course,) = add_courses("Validation")
    svc = TopicService(session, cache)
    with pytest.raises(ValidationError):
        svc.add_topic(course.id, {"name": "no"})
    with pytest.raises(ValidationError):
        svc.add_topic(course.id, {"name": "Materials", "materials": [{"name": "missing url"}]})


def test_youtube_id_taken_from_url_when_missing(session, cache, add_courses):
    (course,) = add_courses("Video")
    svc = TopicService(session, cache)
    topic = svc.add_topic(course.id, {"name": "Short link", "youtubeUrl": "https://youtu.be/dQw4w9WgXcQ"})
    assert topic.youtube_id == "dQw4w9WgXcQ"
    explicit = svc.add_topic(course.id, {
        "name": "Explicit id", "youtubeUrl": "https://youtu.be/zzz", "youtubeId": "keep-me",
    })
    assert explicit.youtube_id == "keep-me"
    assert svc.add_topic(course.id, {"name": "No video"}).youtube_id == ""


def test_youtube_id_from_url():
    assert youtube_id_from_url("https://www.youtube.com/embed/abc123") == "abc123"
    assert youtube_id_from_url("") == ""
