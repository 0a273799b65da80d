"""
Unit tests for exclusion rule matching and conflict resolution.
"""
import pytest

from rules.matcher import find_best_match, matches_rule, rule_priority, rule_rank
from utils.event_logger import EventType


class TestMatchesRule:
    """One address against one rule"""

    def test_exact_requires_full_string_equality(self, make_rule):
        """Test exact rules compare the whole address"""
        rule = make_rule("exact", "https://example.com/page?x=1")
        assert matches_rule("https://example.com/page?x=1", rule)
        assert not matches_rule("https://example.com/page?x=2", rule)
        assert not matches_rule("https://example.com/page", rule)

    def test_exact_compares_unparsable_address_opaquely(self, make_rule):
        """Test exact still works on strings that are not URLs"""
        rule = make_rule("exact", "not a url")
        assert matches_rule("not a url", rule)

    def test_domain_excludes_subdomains(self, make_rule):
        """Test domain rules match the hostname only"""
        rule = make_rule("domain", "example.com")
        assert matches_rule("https://example.com/anything", rule)
        assert not matches_rule("https://www.example.com/", rule)
        assert not matches_rule("https://notexample.com/", rule)

    def test_domain_is_case_insensitive(self, make_rule):
        """Test hostnames compare without case"""
        rule = make_rule("domain", "Example.COM")
        assert matches_rule("https://EXAMPLE.com/x", rule)

    def test_subdomain_requires_strict_subdomain(self, make_rule):
        """Test subdomain rules exclude the bare domain"""
        rule = make_rule("subdomain", "example.com")
        assert matches_rule("https://mail.example.com/", rule)
        assert matches_rule("https://a.b.example.com/", rule)
        assert not matches_rule("https://example.com/", rule)
        assert not matches_rule("https://badexample.com/", rule)

    def test_subdomain_accepts_wildcard_prefix(self, make_rule):
        """Test '*.example.com' behaves like 'example.com'"""
        rule = make_rule("subdomain", "*.example.com")
        assert matches_rule("https://docs.example.com/", rule)
        assert not matches_rule("https://example.com/", rule)

    def test_domain_all_matches_domain_and_subdomains(self, make_rule):
        """Test domain_all is the union of domain and subdomain"""
        rule = make_rule("domain_all", "**.example.com")
        assert matches_rule("https://example.com/", rule)
        assert matches_rule("https://sub.example.com/x", rule)
        assert not matches_rule("https://example.org/", rule)

    def test_path_without_wildcard_is_exact(self, make_rule):
        """Test path rules without '*' match one path only"""
        rule = make_rule("path", "foo.com/docs")
        assert matches_rule("https://foo.com/docs", rule)
        assert not matches_rule("https://foo.com/docs/readme", rule)
        assert not matches_rule("https://bar.com/docs", rule)

    def test_path_wildcard_matches_subtree(self, make_rule):
        """Test trailing '*' covers the path and everything below it"""
        rule = make_rule("path", "foo.com/docs/*")
        assert matches_rule("https://foo.com/docs", rule)
        assert matches_rule("https://foo.com/docs/", rule)
        assert matches_rule("https://foo.com/docs/api/v1", rule)
        assert not matches_rule("https://foo.com/blog", rule)

    def test_path_ignores_querystring(self, make_rule):
        """Test path rules look at the path component only"""
        rule = make_rule("path", "foo.com/search")
        assert matches_rule("https://foo.com/search?q=python", rule)

    def test_path_exact_without_query_ignores_query(self, make_rule):
        """Test path_exact without '?' compares host and path"""
        rule = make_rule("path_exact", "foo.com/watch")
        assert matches_rule("https://foo.com/watch?v=1", rule)
        assert not matches_rule("https://foo.com/watch/later", rule)

    def test_path_exact_with_query_compares_query(self, make_rule):
        """Test path_exact with '?' requires the same querystring"""
        rule = make_rule("path_exact", "foo.com/watch?v=1")
        assert matches_rule("https://foo.com/watch?v=1", rule)
        assert not matches_rule("https://foo.com/watch?v=2", rule)
        assert not matches_rule("https://foo.com/watch", rule)

    def test_domain_path_matches_any_path_on_host(self, make_rule):
        """Test domain_path covers every path of its host"""
        rule = make_rule("domain_path", "foo.com/ignored")
        assert matches_rule("https://foo.com/", rule)
        assert matches_rule("https://foo.com/deep/page", rule)
        assert not matches_rule("https://sub.foo.com/", rule)

    def test_regex_searches_full_address(self, make_rule):
        """Test regex rules search the whole address"""
        rule = make_rule("regex", r"github\.com/.+/pull/\d+")
        assert matches_rule("https://github.com/org/repo/pull/42", rule)
        assert not matches_rule("https://github.com/org/repo/issues/42", rule)

    def test_invalid_regex_never_matches_and_is_logged(self, make_rule, event_logger):
        """Test a pattern that does not compile is treated as no match"""
        rule = make_rule("regex", "([unclosed")
        assert matches_rule("https://example.com/([unclosed", rule) is False
        assert event_logger.history(EventType.RULE_INVALID)

    def test_disabled_rule_never_matches(self, make_rule):
        """Test enabled=False disables every rule type"""
        rule = make_rule("domain_all", "example.com", enabled=False)
        assert not matches_rule("https://example.com/", rule)

    @pytest.mark.parametrize("rule_type", ["domain", "subdomain", "domain_all", "path", "path_exact", "domain_path"])
    def test_structured_types_reject_malformed_addresses(self, make_rule, rule_type):
        """Test unparsable addresses never match host-based rules"""
        rule = make_rule(rule_type, "example.com")
        assert matches_rule("example.com", rule) is False
        assert matches_rule("", rule) is False


class TestFindBestMatch:
    """Choosing one rule among several matches"""

    def test_no_match_returns_none(self, make_rule):
        """Test an address no rule covers"""
        rules = [make_rule("domain", "a.com")]
        assert find_best_match("https://b.com/", rules) is None

    def test_single_match_is_returned(self, make_rule):
        """Test the only matching rule wins"""
        rule = make_rule("domain", "a.com", 60)
        assert find_best_match("https://a.com/", [make_rule("domain", "b.com"), rule]) is rule

    def test_path_beats_domain(self, make_rule):
        """Test path (priority 5) beats domain (priority 4)"""
        domain = make_rule("domain", "foo.com", 60)
        path = make_rule("path", "foo.com/docs*", 300)
        best = find_best_match("https://foo.com/docs/readme", [domain, path])
        assert best is path
        assert best.custom_countdown == 300

    def test_priority_order_is_total(self, make_rule):
        """Test every type outranks the ones below it"""
        url = "https://www.example.com/docs?x=1"
        rules = [
            make_rule("domain_all", "example.com", 10),
            make_rule("domain_path", "www.example.com", 10),
            make_rule("subdomain", "example.com", 10),
            make_rule("domain", "www.example.com", 10),
            make_rule("path", "www.example.com/docs*", 10),
            make_rule("path_exact", "www.example.com/docs", 10),
            make_rule("regex", "example", 10),
            make_rule("exact", url, 10),
        ]
        expected = ["exact", "regex", "path_exact", "path", "domain", "subdomain", "domain_path", "domain_all"]
        remaining = list(rules)
        for rule_type in expected:
            best = find_best_match(url, remaining)
            assert best.type == rule_type
            remaining.remove(best)

    def test_never_close_wins_tie(self, make_rule):
        """Test a null countdown beats a numeric one at equal priority"""
        numeric = make_rule("domain", "a.com", 99999)
        never = make_rule("domain", "a.com", None)
        assert find_best_match("https://a.com/", [numeric, never]) is never
        assert find_best_match("https://a.com/", [never, numeric]) is never

    def test_longer_countdown_wins_tie(self, make_rule):
        """Test the longer countdown wins at equal priority"""
        short = make_rule("domain", "a.com", 60)
        long = make_rule("domain", "a.com", 600)
        assert find_best_match("https://a.com/", [short, long]) is long

    def test_full_tie_keeps_list_order(self, make_rule):
        """Test identical ranks resolve to the earlier rule"""
        first = make_rule("domain", "a.com", 60, rule_id="first")
        second = make_rule("domain", "a.com", 60, rule_id="second")
        assert find_best_match("https://a.com/", [first, second]).id == "first"

    def test_higher_priority_numeric_beats_lower_never_close(self, make_rule):
        """Test tie-break only applies within one priority"""
        never = make_rule("domain_all", "a.com", None)
        exact = make_rule("exact", "https://a.com/", 30)
        assert find_best_match("https://a.com/", [never, exact]) is exact

    def test_domain_all_never_close(self, make_rule):
        """Test a domain_all never-close rule covers subdomain pages"""
        rule = make_rule("domain_all", "example.com", None)
        best = find_best_match("https://sub.example.com/x", [rule])
        assert best is rule
        assert best.never_closes


class TestRuleRank:
    def test_rank_orders_priority_then_protection_then_countdown(self, make_rule):
        """Test the rank tuple components"""
        assert rule_rank(make_rule("exact", "x", 5)) == (8, 0, 5)
        assert rule_rank(make_rule("domain_all", "x", None)) == (1, 1, 0)
        assert rule_priority(make_rule("regex", "x")) == 7
