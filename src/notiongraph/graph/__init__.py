"""Page graph utilities.

Turns a Notion database snapshot into a node/link graph for a force-directed
renderer, and cuts local neighbourhoods out of it. Everything here is a pure
function over immutable inputs; fetching and caching live elsewhere.
"""
