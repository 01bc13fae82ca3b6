"""
生成 slug 的工具函数。

为模型生成友好的 URL 标识符，支持中文转拼音。生成结果只包含小写字母、数字和连字符，
且首尾不含连字符，长度不超过 SLUG_MAX_LENGTH (带后缀时后缀也计入长度)。

- 工具 (Tool) 的 slug 冲突视为名称重复，由调用方拒绝请求 (见 slug_exists)。
- 分类 (Category) 的 slug 冲突时自动添加数字后缀 (见 generate_unique_slug)。
"""
import re
import time
import unicodedata
from sqlalchemy import inspect
from pypinyin import lazy_pinyin

# 与 Category.slug 列长度一致，Tool.slug 列更长
SLUG_MAX_LENGTH = 100


def slugify(text, max_length=SLUG_MAX_LENGTH):
    """
    将文本转换为 URL 友好的 slug 格式

    参数:
        text (str): 要转换的文本
        max_length (int): slug 最大长度，超出部分截断 (中文转拼音后长度会明显增加)

    返回:
        str: 格式化后的 slug，文本中没有字母或数字时返回空字符串
    """
    text = str(text or '')
    # 如果是中文，先转为拼音
    if any('一' <= char <= '鿿' for char in text):
        text = '-'.join(lazy_pinyin(text))

    # 标准化 Unicode 字符，去掉重音等非 ASCII 部分
    text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    text = text.lower()
    # 连续的非字母数字字符替换为单个连字符
    text = re.sub(r'[^a-z0-9]+', '-', text)

    # 截断后可能以连字符结尾，需要再去一次
    return text.strip('-')[:max_length].strip('-')

def slug_exists(slug, model, exclude_id=None):
    """检查 slug 是否已被模型中的其他记录占用"""
    pk_name = inspect(model).primary_key[0].name
    query = model.query.filter(model.slug == slug)
    if exclude_id is not None:
        query = query.filter(getattr(model, pk_name) != exclude_id)
    return query.first() is not None

def _with_suffix(base_slug, suffix, max_length):
    return f"{base_slug[:max_length - len(suffix)].rstrip('-')}{suffix}"

def generate_unique_slug(text, model, exclude_id=None, max_length=SLUG_MAX_LENGTH):
    """
    生成唯一的 slug，如果已存在则添加后缀

    参数:
        text (str): 要转换为 slug 的文本
        model (db.Model): 需要检查唯一性的 SQLAlchemy 模型
        exclude_id (int, optional): 更新时排除的 ID
        max_length (int): slug 最大长度 (包含后缀)

    返回:
        str: 唯一的 slug
    """
    base_slug = slugify(text, max_length) or 'item'
    slug = base_slug
    counter = 1

    while slug_exists(slug, model, exclude_id):
        # 如果存在，添加数字后缀，后缀计入长度上限
        slug = _with_suffix(base_slug, f"-{counter}", max_length)
        counter += 1

        # 防止无限循环，超过一定次数后使用时间戳
        if counter > 100:
            slug = _with_suffix(base_slug, f"-{int(time.time())}", max_length)
            break

    return slug
