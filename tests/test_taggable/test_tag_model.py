"""标签模型测试

测试 AbstractTag 的核心功能：
1. 查找或创建（幂等、作用域区分、并发冲突恢复）
2. 名称校验
3. 热门标签、标签云、推荐
4. 无关联标签清理
"""

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, scoped_session

from ytaggable.exceptions import ValidationException, ErrorCode
from ytaggable.orm import Base, CoreModel

from tests.helpers import Article, Tag, TagRelation, use_settings


@pytest.fixture(autouse=True)
def setup_db(memory_engine):
    """初始化数据库"""
    Base.metadata.create_all(bind=memory_engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
    session_scope = scoped_session(SessionLocal)
    CoreModel.query = session_scope.query_property()
    yield session_scope
    session_scope.remove()


def _article(title="Article", tags=None, **kwargs):
    article = Article(title=title).save()
    if tags:
        article.tag(tags, **kwargs)
    return article


class TestFindOrCreate:
    """查找或创建测试"""

    def test_creates_tag_with_slug(self):
        tag = Tag.find_or_create("Machine Learning")

        assert tag.id is not None
        assert tag.name == "Machine Learning"
        assert tag.slug == "machine-learning"
        assert tag.user_id is None
        assert tag.type is None

    def test_idempotent(self):
        first = Tag.find_or_create("Python")
        second = Tag.find_or_create("Python")

        assert first.id == second.id
        assert Tag.query.count() == 1

    def test_same_slug_keeps_original_name(self):
        first = Tag.find_or_create("Machine Learning")
        second = Tag.find_or_create("  machine   learning ")

        assert second.id == first.id
        assert second.name == "Machine Learning"

    def test_owner_distinct(self):
        global_tag = Tag.find_or_create("Python")
        user1 = Tag.find_or_create("Python", user_id=1)
        user2 = Tag.find_or_create("Python", user_id=2)

        assert len({global_tag.id, user1.id, user2.id}) == 3
        assert user1.user_id == 1

    def test_type_distinct(self):
        plain = Tag.find_or_create("Python")
        typed = Tag.find_or_create("Python", type="language")

        assert plain.id != typed.id
        # type=None 只匹配无类型的标签
        assert Tag.find_or_create("Python").id == plain.id

    def test_for_user_accepts_object(self):
        tag = Tag.find_or_create_for_user("Django", SimpleNamespace(id=5))
        assert tag.user_id == 5
        assert tag.is_owned_by(5)
        assert not tag.is_global()

    def test_global(self):
        tag = Tag.find_or_create_global("Django", type="framework")
        assert tag.is_global()
        assert tag.type == "framework"

    def test_many_keeps_order(self):
        tags = Tag.find_or_create_many(["B", "a", "b"])

        assert [t.slug for t in tags] == ["b", "a", "b"]
        assert tags[0].id == tags[2].id

    def test_find_by_name(self):
        created = Tag.find_or_create("Rust", user_id=3)

        assert Tag.find_by_name("rust", user_id=3).id == created.id
        assert Tag.find_by_name("rust") is None
        assert Tag.find_by_name("Go", user_id=3) is None
        assert Tag.find_by_name("") is None

    def test_scope_disabled_ignores_user(self, monkeypatch):
        use_settings(monkeypatch, user_scope={"enabled": False})

        tag = Tag.find_or_create("Python", user_id=1)
        assert tag.user_id is None
        assert Tag.find_or_create("Python", user_id=2).id == tag.id

    def test_custom_slugger(self, monkeypatch):
        use_settings(monkeypatch, slugger="ytaggable.taggable.slugger:unicode_slugger")

        tag = Tag.find_or_create("机器 学习")
        assert tag.slug == "机器-学习"

    def test_concurrent_insert_recovers(self, monkeypatch):
        """另一事务抢先插入同一标签时，返回已存在的行"""
        existing = Tag.find_or_create("Python", user_id=1)
        original = Tag._find_by_scope.__func__
        calls = []

        def stale_lookup(cls, slug, type, user_id):
            calls.append(slug)
            if len(calls) == 1:
                return None
            return original(cls, slug, type, user_id)

        monkeypatch.setattr(Tag, "_find_by_scope", classmethod(stale_lookup))

        tag = Tag.find_or_create("Python", user_id=1)

        assert tag.id == existing.id
        assert len(calls) == 2
        assert Tag.query.filter(Tag.slug == "python").count() == 1


class TestUniqueIndex:
    """NULL 安全唯一索引测试"""

    def test_index_defined(self):
        names = {ix.name for ix in Tag.__table__.indexes}
        assert "uq_test_tags_slug_scope" in names

    def test_duplicate_global_rejected(self, setup_db):
        session = setup_db()
        session.add(Tag(name="x", slug="x"))
        session.add(Tag(name="X", slug="x"))

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_different_scope_allowed(self, setup_db):
        session = setup_db()
        session.add_all([
            Tag(name="x", slug="x"),
            Tag(name="x", slug="x", user_id=1),
            Tag(name="x", slug="x", type="t"),
        ])
        session.flush()
        assert Tag.query.count() == 3


class TestValidation:
    """名称校验测试"""

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name(self, name):
        with pytest.raises(ValidationException) as exc_info:
            Tag.find_or_create(name)
        assert exc_info.value.code == ErrorCode.INVALID_TAG_NAME

    def test_too_long(self, monkeypatch):
        use_settings(monkeypatch, rules={"max_length": 5})

        with pytest.raises(ValidationException) as exc_info:
            Tag.find_or_create("abcdef")
        assert exc_info.value.code == ErrorCode.TAG_NAME_TOO_LONG
        assert Tag.find_or_create("abcde").slug == "abcde"

    def test_empty_slug(self):
        with pytest.raises(ValidationException) as exc_info:
            Tag.find_or_create("机器学习")
        assert exc_info.value.code == ErrorCode.INVALID_TAG_NAME
        assert Tag.query.count() == 0

    def test_global_tags_disabled(self, monkeypatch):
        use_settings(monkeypatch, user_scope={"allow_global_tags": False})

        with pytest.raises(ValidationException) as exc_info:
            Tag.find_or_create("Python")
        assert exc_info.value.code == ErrorCode.GLOBAL_TAGS_DISABLED

        assert Tag.find_or_create("Python", user_id=1).user_id == 1


class TestQueryBuilders:
    """查询构造测试"""

    @pytest.fixture(autouse=True)
    def seed(self, setup_db):
        self.global_tag = Tag.find_or_create("Python")
        self.user1 = Tag.find_or_create("Django", user_id=1, type="framework")
        self.user2 = Tag.find_or_create("Flask", user_id=2, type="framework")

    def _names(self, query):
        return sorted(t.name for t in query.all())

    def test_for_user(self):
        assert self._names(Tag.for_user(1)) == ["Django"]

    def test_global_only(self):
        assert self._names(Tag.global_only()) == ["Python"]

    def test_for_user_with_global(self):
        assert self._names(Tag.for_user_with_global(SimpleNamespace(id=2))) == ["Flask", "Python"]

    def test_for_user_with_global_without_user(self):
        assert self._names(Tag.for_user_with_global(None)) == ["Django", "Flask", "Python"]

    def test_for_user_with_global_scope_disabled(self, monkeypatch):
        use_settings(monkeypatch, user_scope={"enabled": False})
        Tag.find_or_create("alpha", user_id=5)

        assert self._names(Tag.for_user_with_global(5)) == ["Django", "Flask", "Python", "alpha"]
        assert Tag.find_by_name("alpha").user_id is None

    def test_with_type_composes(self):
        query = Tag.with_type("framework", Tag.for_user(2))
        assert self._names(query) == ["Flask"]

    def test_scoped(self, monkeypatch):
        assert self._names(Tag.scoped()) == ["Django", "Flask", "Python"]
        assert self._names(Tag.scoped(1)) == ["Django", "Python"]

        use_settings(monkeypatch, user_scope={"mix_user_and_global": False})
        assert self._names(Tag.scoped(1)) == ["Django"]

    def test_containing(self):
        assert self._names(Tag.containing("ask")) == ["Flask"]


class TestPopularity:
    """热门标签、标签云与推荐测试"""

    @pytest.fixture(autouse=True)
    def seed(self, setup_db):
        # python: 3, web: 2, orm: 1, mine(user 1): 2, other(user 2): 1
        _article("a1", "python, web, orm")
        _article("a2", "python, web")
        _article("a3", "python")
        _article("a4", "mine", user_id=1)
        _article("a5", "mine", user_id=1)
        _article("a6", "other", user_id=2)

    def test_popular(self):
        tags = Tag.popular(limit=3)

        assert [t.name for t in tags] == ["python", "web", "mine"]
        assert [t.taggables_count for t in tags] == [3, 2, 2]

    def test_popular_tie_broken_by_id(self):
        web = Tag.find_by_name("web")
        mine = Tag.find_by_name("mine", user_id=1)
        names = [t.name for t in Tag.popular(limit=10)]

        assert web.id < mine.id
        assert names.index("web") < names.index("mine")

    def test_popular_for_user_includes_global(self):
        names = [t.name for t in Tag.popular(limit=10, user_id=1)]

        assert names == ["python", "web", "mine", "orm"]
        assert "other" not in names

    def test_popular_for_user_without_global(self, monkeypatch):
        use_settings(monkeypatch, user_scope={"mix_user_and_global": False})
        assert [t.name for t in Tag.popular(limit=10, user_id=1)] == ["mine"]

    def test_popular_user_and_global_tags(self):
        assert [t.name for t in Tag.popular_user_tags(10, 2)] == ["other"]
        assert [t.name for t in Tag.popular_global_tags(2)] == ["python", "web"]

    def test_popular_counts_unused_as_zero(self):
        Tag.find_or_create("unused")
        tags = Tag.popular(limit=10)
        assert tags[-1].name == "unused"
        assert tags[-1].taggables_count == 0

    def test_tag_cloud(self):
        tags = Tag.tag_cloud(user_id=2)
        weights = {t.name: (t.taggables_count, t.weight) for t in tags}

        # 计数范围 1..3
        assert weights == {
            "python": (3, 10),
            "web": (2, 5),
            "orm": (1, 0),
            "other": (1, 0),
        }

    def test_tag_cloud_equal_counts(self, monkeypatch):
        use_settings(monkeypatch, user_scope={"mix_user_and_global": False})
        tags = Tag.tag_cloud(user_id=1)
        assert [(t.name, t.weight) for t in tags] == [("mine", 10)]

    def test_tag_cloud_empty(self):
        assert Tag.tag_cloud(user_id=99) != []
        Tag.query.session.query(TagRelation).delete()
        Tag.query.session.query(Tag).delete()
        assert Tag.tag_cloud() == []

    def test_suggest(self):
        assert [t.name for t in Tag.suggest("o")] == ["python", "orm", "other"]
        assert [t.name for t in Tag.suggest("o", user_id=1)] == ["python", "orm"]
        assert [t.name for t in Tag.suggest("o", limit=1)] == ["python"]

    def test_suggest_escapes_wildcards(self):
        Tag.find_or_create("100% Pure")
        assert [t.name for t in Tag.suggest("%")] == ["100% Pure"]
        assert Tag.suggest("_") == []

    def test_with_usage_count_rows(self):
        rows = Tag.with_usage_count().order_by(Tag.id).all()
        assert [(tag.name, count) for tag, count in rows] == [
            ("python", 3), ("web", 2), ("orm", 1), ("mine", 2), ("other", 1),
        ]

    def test_usage_count(self):
        assert Tag.find_by_name("python").usage_count() == 3


class TestUnusedCleanup:
    """无关联标签测试"""

    @pytest.fixture(autouse=True)
    def seed(self, setup_db):
        _article("a1", "used")
        self.orphan = Tag.find_or_create("orphan")
        self.mine = Tag.find_or_create("mine", user_id=7)
        self.other = Tag.find_or_create("other", user_id=8)

    def test_unused(self):
        assert [t.name for t in Tag.unused()] == ["orphan", "mine", "other"]

    def test_unused_for_user(self):
        assert [t.name for t in Tag.unused(user_id=7)] == ["mine"]

    def test_unused_global_only(self):
        assert [t.name for t in Tag.unused(global_only=True)] == ["orphan"]

    def test_cleanup_unused(self, caplog):
        with caplog.at_level("INFO", logger="ytaggable.taggable.tag_model"):
            assert Tag.cleanup_unused(user_id=7) == 1

        assert Tag.find_by_name("mine", user_id=7) is None
        assert Tag.find_by_name("orphan") is not None
        assert "清理无关联标签 1 个" in caplog.text

        assert Tag.cleanup_unused() == 2
        assert [t.name for t in Tag.query.all()] == ["used"]

    def test_delete_tag_removes_relations(self):
        article = _article("a2", "python, web")
        python = Tag.find_by_name("python")

        python.delete()

        assert TagRelation.count_for(python.id) == 0
        assert article.get_tags() == ["web"]
