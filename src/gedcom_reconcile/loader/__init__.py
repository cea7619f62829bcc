from gedcom_reconcile.loader.graph_loader import load_mapping, load_tree, tree_from_dict

__all__ = ["load_mapping", "load_tree", "tree_from_dict"]
