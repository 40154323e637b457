"""
Test FK dependency ordering and SQL statement handling.

The graph decides which tables must exist before others; the statement
helpers make generated scripts follow that order.
"""

from lakeschema.models import Entity
from lakeschema.tools.schema_graph import (
    SchemaGraph,
    order_sql,
    order_statements,
    split_sql_statements,
    statement_table,
)


def entity(name, *fks):
    return Entity(
        table_name=name,
        columns=[{"name": "id", "isPrimaryKey": True}],
        foreign_keys=[{"column": f"{target}_id", "referencesTable": target} for target in fks],
    )


# =============================================================================
# GRAPH
# =============================================================================

class TestSchemaGraph:

    def test_edges_and_missing_targets(self):
        graph = SchemaGraph.from_entities([entity("orders", "customers"), entity("refunds", "payments")])
        assert [str(e) for e in graph.edges] == ["orders.customers_id → customers.id",
                                                 "refunds.payments_id → payments.id"]
        assert [e.to_table for e in graph.missing_targets()] == ["customers", "payments"]

    def test_parents_before_children(self):
        entities = [entity("shipments", "orders", "customers"), entity("orders", "customers"), entity("customers")]
        assert SchemaGraph.from_entities(entities).dependency_order() == ["customers", "orders", "shipments"]

    def test_independent_tables_keep_entity_order(self):
        entities = [entity("b"), entity("a"), entity("c")]
        assert SchemaGraph.from_entities(entities).dependency_order() == ["b", "a", "c"]

    def test_cycles_are_appended(self):
        entities = [entity("a", "b"), entity("b", "a"), entity("c")]
        assert SchemaGraph.from_entities(entities).dependency_order() == ["c", "a", "b"]

    def test_self_reference_does_not_block(self):
        entities = [entity("employees", "employees"), entity("departments")]
        assert SchemaGraph.from_entities(entities).dependency_order() == ["employees", "departments"]

    def test_order_entities_keeps_duplicates(self):
        entities = [entity("orders", "customers"), entity("customers"), entity("customers")]
        ordered = SchemaGraph.from_entities(entities).order_entities(entities)
        assert [e.table_name for e in ordered] == ["customers", "customers", "orders"]


# =============================================================================
# STATEMENTS
# =============================================================================

class TestSplitStatements:

    def test_semicolons_in_strings_and_comments(self):
        sql = """
        -- seed data; do not edit
        INSERT INTO notes VALUES ('a;b', 'it''s; fine');
        /* block; comment */
        INSERT INTO notes VALUES ("x;y", 2);
        """
        statements = split_sql_statements(sql)
        assert len(statements) == 2
        assert "'a;b'" in statements[0]
        assert "'it''s; fine'" in statements[0]
        assert statements[1].endswith('("x;y", 2)')

    def test_comment_only_fragments_dropped(self):
        assert split_sql_statements("CREATE TABLE t (id INT);\n-- the end\n") == ["CREATE TABLE t (id INT)"]

    def test_dollar_quoted_function_body_stays_whole(self):
        sql = """
        CREATE FUNCTION touch() RETURNS trigger AS $$
        BEGIN NEW.updated_at = now(); RETURN NEW; END;
        $$ LANGUAGE plpgsql;
        CREATE FUNCTION noop() RETURNS void AS $body$ SELECT 1; $body$ LANGUAGE sql;
        SELECT $1;
        """
        statements = split_sql_statements(sql)
        assert len(statements) == 3
        assert statements[0].endswith("$$ LANGUAGE plpgsql")
        assert "RETURN NEW; END;" in statements[0]
        assert statements[1].endswith("$body$ LANGUAGE sql")
        assert statements[2] == "SELECT $1"

    def test_trigger_body_stays_whole(self):
        sql = """
        CREATE TRIGGER orders_touch AFTER UPDATE ON orders
        BEGIN
            UPDATE orders SET status = CASE WHEN NEW.total > 0 THEN 'paid' ELSE 'open' END WHERE id = NEW.id;
            INSERT INTO audit VALUES (NEW.id);
        END;
        BEGIN;
        INSERT INTO audit VALUES (1);
        """
        statements = split_sql_statements(sql)
        assert len(statements) == 3
        assert statements[0].startswith("CREATE TRIGGER orders_touch")
        assert statements[0].endswith("END")
        assert statements[1:] == ["BEGIN", "INSERT INTO audit VALUES (1)"]

    def test_statement_kinds(self):
        assert statement_table('CREATE TABLE IF NOT EXISTS "public"."Orders" (id INT)') == ("create", "orders")
        assert statement_table("insert or ignore into `items` values (1)") == ("insert", "items")
        assert statement_table("CREATE UNIQUE INDEX ix ON customers (email)") == ("index", "customers")
        assert statement_table("DROP TABLE IF EXISTS [Sales]") == ("drop", "sales")
        assert statement_table("CREATE TRIGGER t AFTER INSERT ON Orders BEGIN SELECT 1; END") == ("trigger", "orders")
        assert statement_table("ALTER TABLE orders ADD COLUMN x INT") == ("alter", None)
        assert statement_table("SET search_path TO public") == (None, None)


class TestOrderStatements:

    def test_full_reordering(self):
        statements = [
            "SET search_path TO public",
            "INSERT INTO orders VALUES (1, 1)",
            "CREATE TABLE orders (id INT, customer_id INT)",
            "ALTER TABLE orders ADD CONSTRAINT fk FOREIGN KEY (customer_id) REFERENCES customers(id)",
            "CREATE TABLE customers (id INT)",
            "DROP TABLE IF EXISTS customers",
            "DROP TABLE IF EXISTS orders",
            "INSERT INTO customers VALUES (1)",
            "CREATE INDEX idx_orders_customer ON orders (customer_id)",
        ]
        assert order_statements(statements, ["customers", "orders"]) == [
            "SET search_path TO public",
            "DROP TABLE IF EXISTS orders",
            "DROP TABLE IF EXISTS customers",
            "CREATE TABLE customers (id INT)",
            "INSERT INTO customers VALUES (1)",
            "CREATE TABLE orders (id INT, customer_id INT)",
            "INSERT INTO orders VALUES (1, 1)",
            "CREATE INDEX idx_orders_customer ON orders (customer_id)",
            "ALTER TABLE orders ADD CONSTRAINT fk FOREIGN KEY (customer_id) REFERENCES customers(id)",
        ]

    def test_trigger_follows_its_table(self):
        statements = [
            "CREATE TRIGGER orders_audit AFTER INSERT ON orders BEGIN INSERT INTO audit VALUES (NEW.id); END",
            "CREATE TABLE orders (id INT, customer_id INT)",
            "CREATE TABLE customers (id INT)",
        ]
        assert order_statements(statements, ["customers", "orders"]) == [
            "CREATE TABLE customers (id INT)",
            "CREATE TABLE orders (id INT, customer_id INT)",
            "CREATE TRIGGER orders_audit AFTER INSERT ON orders BEGIN INSERT INTO audit VALUES (NEW.id); END",
        ]

    def test_unknown_tables_go_after_known_ones(self):
        statements = ["CREATE TABLE audit (id INT)", "CREATE TABLE customers (id INT)"]
        assert order_statements(statements, ["customers"]) == [
            "CREATE TABLE customers (id INT)",
            "CREATE TABLE audit (id INT)",
        ]

    def test_order_sql_rejoins_with_semicolons(self):
        sql = "INSERT INTO b VALUES (1);\nINSERT INTO a VALUES (2);"
        assert order_sql(sql, ["a", "b"]) == "INSERT INTO a VALUES (2);\n\nINSERT INTO b VALUES (1);"

    def test_order_sql_empty(self):
        assert order_sql("  ", ["a"]) == ""
