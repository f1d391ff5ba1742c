"""SEO artifact builders: indexability, links, meta, structured data, sitemaps"""
