"""
测试公共夹具: 内存 SQLite 上的应用实例、测试客户端、用户、令牌、分类和工具数据。
"""
from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from sama import create_app, db
from sama.models import User, Category, Tool, ToolReview


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'RATELIMIT_ENABLED': False,
        'JWT_SECRET_KEY': 'test-jwt-secret',
        'LOG_LEVEL': 'WARNING',
        'LOG_FILE': None,
    })
    # 请求复用同一个应用上下文，测试代码与视图共享数据库会话
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    owner = User(email='owner@example.com', name='Owner')
    other = User(email='other@example.com')
    admin = User(email='admin@example.com', name='Admin', is_admin=True)
    db.session.add_all([owner, other, admin])
    db.session.commit()
    return {'owner': owner, 'other': other, 'admin': admin}


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(
            identity=str(user.id),
            additional_claims={'is_admin': bool(user.is_admin)}
        )
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def categories(app):
    image = Category(name='Image Generation', slug='image-generation', description='Generate and edit images')
    text = Category(name='Text & Writing', slug='text-writing', description='Writing assistants')
    empty = Category(name='Audio & Voice', slug='audio-voice')
    db.session.add_all([image, text, empty])
    db.session.commit()
    return {'image': image, 'text': text, 'empty': empty}


@pytest.fixture
def make_tool(app):
    counter = {'n': 0}

    def _make(owner, name, **overrides):
        counter['n'] += 1
        values = {
            'slug': name.lower().replace(' ', '-'),
            'tagline': f'{name} tagline',
            'description': f'{name} description',
            'website_url': 'https://example.com',
            'status': 'APPROVED',
            'visibility': 'PUBLIC',
            'pricing_model': 'FREE',
            'tags': [],
            'tech_stack': [],
            'created_at': datetime(2024, 1, 1) + timedelta(days=counter['n']),
        }
        values.update(overrides)
        tool = Tool(owner_id=owner.id, name=name, **values)
        db.session.add(tool)
        db.session.commit()
        return tool
    return _make


@pytest.fixture
def catalog(users, categories, make_tool):
    """一组覆盖不同状态、定价模式、标签和技术栈的工具"""
    owner = users['owner']
    tools = {
        'forge': make_tool(
            owner, 'Image Forge',
            description='Create image assets from prompts',
            category_id=categories['image'].id,
            tags=['image', 'design'], tech_stack=['Python', 'PyTorch'],
            rating_average=4.5, featured=True, usage_count=30,
        ),
        'painter': make_tool(
            owner, 'Pixel Painter',
            description='Paint every image pixel by pixel',
            pricing_model='SUBSCRIPTION',
            category_id=categories['image'].id,
            tags=['image'], tech_stack=['Node.js'],
            rating_average=3.0, usage_count=10,
        ),
        'wizard': make_tool(
            owner, 'Text Wizard',
            description='Rewrite and summarize documents',
            category_id=categories['text'].id,
            tags=['writing'], tech_stack=['Python'],
            rating_average=4.0, usage_count=20,
        ),
        'draft': make_tool(
            owner, 'Secret Draft',
            description='An unreleased image tool',
            status='DRAFT', visibility='PRIVATE',
            tags=['image'], tech_stack=['Python'],
        ),
        'unlisted': make_tool(
            owner, 'Quiet Image',
            description='Approved but unlisted image helper',
            visibility='UNLISTED',
            tags=['image'],
        ),
    }
    return tools


@pytest.fixture
def add_review(app):
    def _add(tool, user, rating, created_at=None):
        review = ToolReview(tool_id=tool.id, user_id=user.id, rating=rating,
                            created_at=created_at or datetime.utcnow())
        db.session.add(review)
        db.session.commit()
        return review
    return _add
