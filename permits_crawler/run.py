"""CLI runner for the Building Permits Crawler.

Menu
----
1. List configured sites
2. Crawl one site
3. Crawl all enabled sites
4. Convert JSON results to CSV
5. Check site connections
6. Exit

Notes
-----
- Logs are written to ``LOG_FILE`` (``logs.txt`` at the project root by default).
- Console output is user-focused; operational logs are not printed.
"""

from permits_crawler.ui.menu import main


if __name__ == "__main__":
    main()
