"""Reflex configuration for the data table demo app."""

import reflex as rx

config = rx.Config(
    app_name="data_table_demo",
    plugins=[rx.plugins.SitemapPlugin()],
)
