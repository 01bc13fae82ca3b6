from sama import db
from sama.models import Category
from sama.utils.slug_generator import generate_unique_slug

def init_categories():
    """初始化分类数据，返回新增的分类数量"""
    # 检查是否已有数据
    if Category.query.first() is not None:
        return 0

    # 添加基础分类
    categories = [
        {"name": "Text & Writing", "description": "用于文本生成、改写和摘要的AI工具", "icon": "file-alt"},
        {"name": "Image Generation", "description": "用于生成和编辑图像的AI工具", "icon": "image"},
        {"name": "Video", "description": "用于视频创作和编辑的AI工具", "icon": "video"},
        {"name": "Audio & Voice", "description": "用于语音合成、转写和音频处理的AI工具", "icon": "music"},
        {"name": "Developer Tools", "description": "用于辅助编程和开发的AI工具", "icon": "code"},
        {"name": "Data & Analytics", "description": "用于数据处理和分析的AI工具", "icon": "chart-bar"},
        {"name": "Productivity", "description": "提高工作效率的AI工具", "icon": "tasks"},
        {"name": "Marketing", "description": "用于营销文案、SEO 和增长的AI工具", "icon": "bullhorn"},
        {"name": "Customer Support", "description": "用于客服和对话机器人的AI工具", "icon": "comments"},
        {"name": "Research", "description": "辅助研究和学术工作的AI工具", "icon": "microscope"}
    ]

    for category_data in categories:
        category = Category(
            name=category_data["name"],
            slug=generate_unique_slug(category_data["name"], Category),
            description=category_data["description"],
            icon=category_data["icon"]
        )
        db.session.add(category)
        # 逐条 flush，使下一条的 slug 唯一性检查能看到已添加的分类
        db.session.flush()

    db.session.commit()
    return len(categories)
