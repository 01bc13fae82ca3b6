import pytest
from werkzeug.datastructures import MultiDict

from sama.services.catalog_query import (
    SearchParams, SearchParamError, run_search, build_tool_query, tool_suggestions,
)


def params(**kwargs):
    return SearchParams.from_args(MultiDict(kwargs))


def names(tools):
    return [tool.name for tool in tools]


class TestSearchParams:

    def test_defaults(self):
        p = params()
        assert p.page == 1
        assert p.per_page == 20
        assert p.sort_by == 'created_at'
        assert p.sort_order == 'desc'
        assert p.window == (0, 19)

    def test_per_page_is_clamped(self):
        p = params(per_page='500', page='3')
        assert p.per_page == 50
        assert p.window == (100, 149)

    def test_invalid_page_falls_back_to_first(self):
        assert params(page='0').page == 1
        assert params(page='abc').page == 1

    def test_unknown_sort_falls_back(self):
        p = params(sort_by='bogus', sort_order='sideways')
        assert p.sort_by == 'created_at'
        assert p.sort_order == 'desc'

    def test_list_params_accept_commas_and_repeats(self):
        p = SearchParams.from_args(MultiDict([('tags', 'a,b'), ('tags', 'c'), ('tech_stack', ' Python , ')]))
        assert p.tags == ['a', 'b', 'c']
        assert p.tech_stack == ['Python']

    def test_unknown_pricing_model_rejected(self):
        with pytest.raises(SearchParamError):
            params(pricing_model='CHEAP')

    def test_non_numeric_rating_rejected(self):
        with pytest.raises(SearchParamError):
            params(rating_min='high')

    def test_inverted_rating_range_rejected(self):
        with pytest.raises(SearchParamError):
            params(rating_min='4', rating_max='2')

    def test_status_only_read_when_allowed(self):
        assert params(status='DRAFT').status is None
        p = SearchParams.from_args(MultiDict({'status': 'DRAFT'}), allow_status=True)
        assert p.status == 'DRAFT'
        with pytest.raises(SearchParamError):
            SearchParams.from_args(MultiDict({'status': 'LOST'}), allow_status=True)


class TestRunSearch:

    def test_only_public_approved_tools(self, catalog):
        tools, total = run_search(params())
        assert total == 3
        assert set(names(tools)) == {'Image Forge', 'Pixel Painter', 'Text Wizard'}

    def test_default_order_is_newest_first(self, catalog):
        tools, _ = run_search(params())
        assert names(tools) == ['Text Wizard', 'Pixel Painter', 'Image Forge']

    def test_query_and_pricing_model(self, catalog):
        tools, total = run_search(params(q='image', pricing_model='FREE'))
        assert names(tools) == ['Image Forge']
        assert total == 1

    def test_query_is_case_insensitive(self, catalog):
        tools, _ = run_search(params(q='PIXEL'))
        assert names(tools) == ['Pixel Painter']

    def test_like_wildcards_are_literal(self, catalog):
        tools, total = run_search(params(q='%'))
        assert total == 0
        assert tools == []

    def test_tags_overlap(self, catalog):
        tools, _ = run_search(params(tags='design,writing', sort_by='name', sort_order='asc'))
        assert names(tools) == ['Image Forge', 'Text Wizard']

    def test_tech_stack_overlap_matches_whole_values(self, catalog):
        tools, _ = run_search(params(tech_stack='Py', sort_by='name', sort_order='asc'))
        assert tools == []
        tools, _ = run_search(params(tech_stack='Python', sort_by='name', sort_order='asc'))
        assert names(tools) == ['Image Forge', 'Text Wizard']

    def test_category_by_slug_and_id(self, catalog, categories):
        by_slug, _ = run_search(params(category='image-generation', sort_by='name', sort_order='asc'))
        by_id, _ = run_search(params(category=str(categories['image'].id), sort_by='name', sort_order='asc'))
        assert names(by_slug) == names(by_id) == ['Image Forge', 'Pixel Painter']

    def test_rating_range(self, catalog):
        tools, _ = run_search(params(rating_min='3.5', rating_max='4.2'))
        assert names(tools) == ['Text Wizard']

    def test_featured_only(self, catalog):
        tools, _ = run_search(params(featured_only='true'))
        assert names(tools) == ['Image Forge']

    def test_sort_by_rating_ascending(self, catalog):
        tools, _ = run_search(params(sort_by='average_rating', sort_order='asc'))
        assert names(tools) == ['Pixel Painter', 'Text Wizard', 'Image Forge']

    def test_pagination_keeps_total(self, catalog):
        tools, total = run_search(params(per_page='2', page='2', sort_by='name', sort_order='asc'))
        assert total == 3
        assert names(tools) == ['Text Wizard']

    def test_page_past_the_end_is_empty(self, catalog):
        tools, total = run_search(params(per_page='2', page='5'))
        assert tools == []
        assert total == 3

    def test_include_unpublished_with_status(self, catalog):
        query = build_tool_query(SearchParams.from_args(MultiDict({'status': 'DRAFT'}), allow_status=True),
                                 include_unpublished=True)
        assert names(query.all()) == ['Secret Draft']


def test_tool_suggestions_match_names_and_tags(catalog):
    suggestions = tool_suggestions('writ')
    assert suggestions == [{'name': 'Text Wizard', 'tags': ['writing']}]


class TestTagMatching:

    def test_tags_match_ignores_case(self, catalog):
        tools, _ = run_search(params(tags='IMAGE,Design', sort_by='name', sort_order='asc'))
        assert names(tools) == ['Image Forge', 'Pixel Painter']

    def test_tech_stack_match_ignores_case(self, catalog):
        tools, _ = run_search(params(tech_stack='python', sort_by='name', sort_order='asc'))
        assert names(tools) == ['Image Forge', 'Text Wizard']

    @pytest.mark.parametrize('q', ['[', ']', '"', '", "'])
    def test_json_punctuation_matches_nothing(self, catalog, q):
        tools, total = run_search(params(q=q))
        assert total == 0
        assert tools == []
        assert tool_suggestions(q) == []

    def test_query_matches_tag_text_not_its_encoding(self, users, make_tool):
        make_tool(users['owner'], 'Canvas', description='Drawing helper', tags=['图像'])
        tools, _ = run_search(params(q='u56fe'))
        assert tools == []
        tools, _ = run_search(params(q='图像'))
        assert names(tools) == ['Canvas']

    def test_query_matches_part_of_a_tag(self, catalog):
        tools, _ = run_search(params(q='desi'))
        assert names(tools) == ['Image Forge']


def test_huge_page_returns_empty_page_with_total(catalog):
    tools, total = run_search(params(page='100000000000000000000'))
    assert tools == []
    assert total == 3
