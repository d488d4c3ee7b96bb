from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from kitchenunity.core.config import get_settings
from kitchenunity.core.database import Base
from kitchenunity.crm import models as crm_models  # noqa: F401
from kitchenunity.operations import models as operations_models  # noqa: F401
from kitchenunity.sales import models as sales_models  # noqa: F401
from kitchenunity.tenancy import models as tenancy_models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Settings win over alembic.ini so migrations and the API share DATABASE_URL.
config.set_main_option("sqlalchemy.url", get_settings().database_url)

target_metadata = Base.metadata
configure_options = {"target_metadata": target_metadata, "compare_type": True}


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **configure_options)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
