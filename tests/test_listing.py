from servedir.fs import FileInfo
from servedir.services.listing import escape, listingEntries, listingHref, renderListing


def entry(name: str, isDir: bool = False) -> FileInfo:
	return FileInfo(name, 0, None, isDir)


def test_escape():
	assert escape("""<a href="x">'&'</a>""") == (
		"&lt;a href=&#34;x&#34;&gt;&#39;&amp;&#39;&lt;/a&gt;"
	)


def test_href():
	assert listingHref("plain.txt") == "plain.txt"
	assert listingHref("sub/") == "sub/"
	assert listingHref("a&b=c;d,e+f@g$") == "a&b=c;d,e+f@g$"
	assert listingHref("what?#<>.txt") == "what%3F%23%3C%3E.txt"
	assert listingHref("with space") == "with%20space"
	assert listingHref("100%") == "100%25"
	assert listingHref("été") == "%C3%A9t%C3%A9"
	# A colon in the first segment would be read as a scheme
	assert listingHref("c:d") == "./c:d"
	assert listingHref("dir/c:d") == "dir/c:d"


def test_entries_are_sorted_bytewise():
	entries = listingEntries(
		[entry("b"), entry("B"), entry("a"), entry("é"), entry("Z"), entry("_")]
	)
	assert [_.name for _ in entries] == ["B", "Z", "_", "a", "b", "é"]


def test_entries_are_filtered():
	entries = listingEntries(
		[entry(".git", True), entry("src", True), entry(".gitignore")],
		lambda _: _.startswith(".git"),
	)
	assert [_.name for _ in entries] == ["src"]


def test_render():
	assert renderListing([]) == "<pre>\n</pre>\n"
	assert renderListing([entry("docs", True), entry("a<b>.txt")]) == (
		"<pre>\n"
		'<a href="docs/">docs/</a>\n'
		'<a href="a%3Cb%3E.txt">a&lt;b&gt;.txt</a>\n'
		"</pre>\n"
	)


# EOF
