# BGG detail scraper: parallel workers over a shared, lease-based backlog
