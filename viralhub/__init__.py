"""
Viral Hub Engine

Content opportunity pipeline and performance monitoring for agency clients:
1. Ingests social signals (Reddit) and filters spam
2. Clusters signals by keyword overlap and scores them (0-100)
3. Builds ranked content opportunities per channel
4. Generates canonical briefs and channel content with Claude
5. Detects Shopify / Google Ads regressions and raises deduplicated alerts
"""

__version__ = "0.1.0"
